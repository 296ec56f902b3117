from __future__ import annotations

import asyncio

import streamlit as st

from nostr_sentinel.errors import SentinelError
from nostr_sentinel.models import DEFAULT_RELAY, DEFAULT_TZ, ReceivedEvent
from nostr_sentinel.query import QueryResult, latest_by_identifier, scan_events
from nostr_sentinel.relay import (
    RelaySession,
    load_keys,
    location_filter,
    nip44_decrypt_payload,
    parse_public_identity,
)
from nostr_sentinel.timeutils import dt_from_epoch_s, tzinfo_from_name


async def _fetch(relays: list[str], author: str, d_tag: str | None, limit: int, timeout: float):
    async with RelaySession(relays) as session:
        return await session.fetch_events(location_filter(author, d_tag=d_tag, limit=limit), timeout_seconds=timeout)


@st.cache_data(show_spinner=False, ttl=30)
def _load_events(
    relays: tuple[str, ...],
    author: str,
    d_tag: str | None,
    limit: int,
    timeout: float,
) -> list[ReceivedEvent]:
    return asyncio.run(_fetch(list(relays), author, d_tag, limit, timeout))


def _scan(events: list[ReceivedEvent], secret: str | None) -> list[QueryResult]:
    decrypt = None
    if secret:
        keys = load_keys(secret)

        def decrypt(event):
            return nip44_decrypt_payload(keys, event.pubkey, event.content)

    return list(scan_events(events, decrypt))


def main() -> None:
    st.set_page_config(page_title="Sentinel：位置事件查看", layout="wide")
    st.title("Sentinel：Nostr 位置事件查看")

    with st.sidebar:
        st.subheader("查询")
        pubkey = st.text_input("公钥（hex 或 npub）", value="")
        relays_text = st.text_area("中继 URL（每行一个）", value=DEFAULT_RELAY)
        d_tag = st.text_input("d tag（留空=全部）", value="")
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)

        with st.expander("高级参数（通常不用改）", expanded=False):
            limit = st.number_input("最多事件数", value=20, min_value=1, step=5)
            timeout = st.number_input("拉取超时（秒）", value=10.0, min_value=1.0, step=1.0)
            secret = st.text_input("解密私钥（hex/nsec，可选）", value="", type="password")

        refresh = st.button("刷新", type="primary", use_container_width=True)

    if not pubkey.strip():
        st.info("请在左侧输入要查看的公钥。")
        return

    relays = tuple(r.strip() for r in relays_text.splitlines() if r.strip())
    if not relays:
        st.error("至少需要一个中继 URL。")
        return

    if refresh:
        _load_events.clear()

    try:
        tzinfo_from_name(tz_name)
        author = parse_public_identity(pubkey)
        with st.spinner("正在从中继拉取位置事件 ..."):
            events = _load_events(relays, author, d_tag.strip() or None, int(limit), float(timeout))
        results = _scan(events, secret or None)
    except SentinelError as exc:
        st.error(str(exc))
        return
    except Exception as exc:
        st.exception(exc)
        return

    records = [r.record for r in results if r.record is not None]
    locked = sum(1 for r in results if r.locked)
    failed = sum(1 for r in results if r.error is not None)

    st.subheader("汇总")
    c1, c2, c3 = st.columns(3)
    c1.metric("可读位置", str(len(records)))
    c2.metric("加密未解开", str(locked))
    c3.metric("解析/解密失败", str(failed))

    latest = latest_by_identifier(results)
    if latest:
        st.subheader("每个设备（d tag）的最新位置")
        st.map(
            [{"lat": rec.lat, "lon": rec.lon} for rec in latest.values()],
            latitude="lat",
            longitude="lon",
        )

    rows: list[dict[str, object]] = []
    for rec in records:
        rows.append(
            {
                "time": dt_from_epoch_s(rec.timestamp, tz_name).isoformat(sep=" "),
                "d_tag": rec.d_tag,
                "geohash": rec.geohash,
                "lat": round(rec.lat, 6),
                "lon": round(rec.lon, 6),
                "accuracy_m": rec.accuracy,
                "visibility": rec.visibility.value,
            }
        )

    st.subheader("明细（按时间倒序）")
    st.dataframe(rows, use_container_width=True, height=520)

    st.caption("说明：经纬度为 geohash 格子的中心点，精度受发布端 precision 限制。")


if __name__ == "__main__":
    main()
