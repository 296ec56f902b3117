"""Command-line interface for nostr_sentinel.

Run:
    python -m nostr_sentinel query --pubkey npub1...
    python -m nostr_sentinel follow --pubkey npub1... --alert-after 15m
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from nostr_sentinel import geohash
from nostr_sentinel.assembler import assemble_public_event
from nostr_sentinel.config import build_tracking_config, load_config_file, secret_key_from_env
from nostr_sentinel.errors import CodecError, InputValidationError
from nostr_sentinel.models import DEFAULT_RELAY, DEFAULT_TZ, LocationRecord, TrackingConfig
from nostr_sentinel.timeutils import dt_from_epoch_s, format_duration, parse_duration

logger = logging.getLogger(__name__)


def _resolve_recipients(values) -> tuple:
    from nostr_sentinel.relay import parse_public_identity

    # npub -> hex; anything else is left for TrackingConfig to reject
    return tuple(parse_public_identity(v) if isinstance(v, str) else v for v in values)


def _tracking_config(args: argparse.Namespace) -> TrackingConfig:
    """Config from --config and flags; recipient identities are checked before any I/O."""

    file_values = load_config_file(args.config) if args.config else None
    if file_values and file_values.get("recipient_pubkeys"):
        file_values["recipient_pubkeys"] = _resolve_recipients(file_values["recipient_pubkeys"])
    return build_tracking_config(
        file_values,
        interval_secs=getattr(args, "interval", None),
        precision=args.precision,
        encrypted=True if args.recipient else None,
        recipient_pubkeys=_resolve_recipients(args.recipient) if args.recipient else None,
        relays=tuple(args.relays) if getattr(args, "relays", None) else None,
        d_tag=args.d_tag,
        expiration_secs=args.expiration_secs,
    )


def _format_record(rec: LocationRecord, tz_name: str) -> str:
    when = dt_from_epoch_s(rec.timestamp, tz_name).isoformat(sep=" ")
    acc = "None" if rec.accuracy is None else f"{rec.accuracy:g}"
    line = (
        f"[{when}] kind:{rec.kind} d:{rec.d_tag} geohash:{rec.geohash} "
        f"lat:{rec.lat:.6f} lon:{rec.lon:.6f} acc:{acc}"
    )
    return line + (" (decrypted)" if rec.encrypted else "")


def _cmd_encode(args: argparse.Namespace) -> int:
    print(geohash.encode(args.lat, args.lon, args.precision))
    return 0


def _cmd_decode(args: argparse.Namespace) -> int:
    lat, lon = geohash.decode(args.geohash)
    lat_min, lat_max, lon_min, lon_max = geohash.decode_bbox(args.geohash)
    print(f"lat={lat:.8f}, lon={lon:.8f}")
    print(f"cell: lat=[{lat_min}, {lat_max}], lon=[{lon_min}, {lon_max}]")
    return 0


def _cmd_template(args: argparse.Namespace) -> int:
    cfg = _tracking_config(args)
    if cfg.encrypted:
        raise InputValidationError("template 只输出公开事件（kind 30472）；加密事件请用 publish")
    template = assemble_public_event(args.lat, args.lon, args.accuracy, cfg)
    print(json.dumps(template.to_dict(), ensure_ascii=False))
    return 0


def _require_keys(args: argparse.Namespace):
    from nostr_sentinel.relay import load_keys

    secret = secret_key_from_env(args.secret_key)
    if not secret:
        raise InputValidationError("需要私钥：使用 --secret-key 或设置环境变量 SENTINEL_SECRET_KEY")
    return load_keys(secret)


def _make_publisher(cfg: TrackingConfig, keys, session):
    from nostr_sentinel.relay import nip44_encrypt_payload, sign_template
    from nostr_sentinel.tracking import LocationPublisher

    return LocationPublisher(
        cfg,
        sign=lambda template: sign_template(template, keys),
        publish=session.publish,
        encrypt=(lambda recipient, text: nip44_encrypt_payload(keys, recipient, text)) if cfg.encrypted else None,
    )


def _cmd_publish(args: argparse.Namespace) -> int:
    from nostr_sentinel.relay import RelaySession

    cfg = _tracking_config(args)
    # 网络活动之前先校验坐标
    geohash.encode(args.lat, args.lon, cfg.precision)
    keys = _require_keys(args)

    async def _run() -> int:
        async with RelaySession(cfg.relays) as session:
            publisher = _make_publisher(cfg, keys, session)
            report = await publisher.publish_location(args.lat, args.lon, args.accuracy)
        print(f"已发布：成功={report.published}，失败={report.failed}")
        return 0 if report.published > 0 else 1

    return asyncio.run(_run())


def _cmd_track(args: argparse.Namespace) -> int:
    from nostr_sentinel.csv_io import load_track_points
    from nostr_sentinel.relay import RelaySession

    cfg = _tracking_config(args)
    keys = _require_keys(args)
    points, summary = load_track_points(args.csv)
    if args.limit is not None:
        points = points[: args.limit]
    print(
        f"轨迹点：total_rows={summary.rows_total}, parsed={summary.rows_parsed}, "
        f"skipped={summary.rows_skipped}；每 {cfg.interval_secs}s 发布一次，共 {len(points)} 次",
        file=sys.stderr,
        flush=True,
    )

    async def _run() -> int:
        async with RelaySession(cfg.relays) as session:
            publisher = _make_publisher(cfg, keys, session)
            report = await publisher.run(points)
        print(f"已发布：成功={report.published}，失败={report.failed}")
        return 0

    try:
        return asyncio.run(_run())
    except KeyboardInterrupt:
        print("\n收到中断信号：停止发布。", file=sys.stderr, flush=True)
        return 130


def _cmd_query(args: argparse.Namespace) -> int:
    from nostr_sentinel.query import QueryResult, scan_events
    from nostr_sentinel.relay import RelaySession, location_filter, nip44_decrypt_payload, parse_public_identity

    author = parse_public_identity(args.pubkey)
    dt_from_epoch_s(0, args.tz)  # validate tz before I/O
    decrypt = None
    if args.decrypt_with:
        from nostr_sentinel.relay import load_keys

        keys = load_keys(args.decrypt_with)

        def decrypt(event):
            return nip44_decrypt_payload(keys, event.pubkey, event.content)

    async def _fetch():
        async with RelaySession(args.relays) as session:
            flt = location_filter(author, d_tag=args.d_tag, limit=args.limit)
            return await session.fetch_events(flt, timeout_seconds=args.timeout)

    events = asyncio.run(_fetch())
    results: list[QueryResult] = list(scan_events(events, decrypt))

    if args.json:
        payload = [
            {
                "id": r.event.id,
                "kind": r.event.kind,
                "created_at": r.event.created_at,
                "locked": r.locked,
                "error": str(r.error) if r.error is not None else None,
                "record": asdict(r.record) if r.record is not None else None,
            }
            for r in results
        ]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    if not results:
        print("没有找到位置事件。", file=sys.stderr)
    for r in results:
        if r.record is not None:
            print(_format_record(r.record, args.tz))
        elif r.locked:
            when = dt_from_epoch_s(r.event.created_at, args.tz).isoformat(sep=" ")
            print(f"[{when}] kind:{r.event.kind} (encrypted, use --decrypt-with to decode)")
    return 0


def _cmd_follow(args: argparse.Namespace) -> int:
    from nostr_sentinel.monitor import AlertDispatcher, LivenessMonitor, MonitorParams, follow_handler
    from nostr_sentinel.relay import RelaySession, location_filter, parse_public_identity, to_npub
    from nostr_sentinel.webhook import WebhookConfig

    # 输入校验必须在任何网络活动之前完成
    threshold = parse_duration(args.alert_after)
    target = parse_public_identity(args.pubkey)
    params = MonitorParams(threshold_seconds=float(threshold), check_interval_seconds=args.check_interval)
    webhook = WebhookConfig(url=args.webhook, timeout_seconds=args.webhook_timeout) if args.webhook else None

    async def _run() -> None:
        monitor = LivenessMonitor(target, params, dispatcher=AlertDispatcher(webhook))
        async with RelaySession(args.relays) as session:
            await session.subscribe(location_filter(target, since_now=True))
            print(
                f"正在关注 {to_npub(target)}：静默超过 {format_duration(threshold)} 将告警",
                file=sys.stderr,
                flush=True,
            )
            monitor.start()
            try:
                await session.handle_events(follow_handler(monitor, target))
            finally:
                monitor.stop(timeout=1.0)
                logger.info(
                    "停止关注：收到更新=%s，告警=%s", monitor.updates_observed, monitor.alerts_raised
                )

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        print("\n收到中断信号：停止关注。", file=sys.stderr, flush=True)
        return 130
    return 0


def _cmd_whoami(args: argparse.Namespace) -> int:
    secret = secret_key_from_env(args.secret_key)
    if not secret:
        print("No identity configured (use --secret-key or SENTINEL_SECRET_KEY; query uses --decrypt-with)", file=sys.stderr)
        return 0
    keys = _require_keys(args)
    pk = keys.public_key()
    print(f"pubkey={pk.to_hex()}")
    print(f"npub={pk.to_bech32()}")
    return 0


def _add_tracking_args(p: argparse.ArgumentParser, *, with_relays: bool = True) -> None:
    p.add_argument("--config", type=str, default=None, help="JSON 配置文件（命令行参数优先）")
    p.add_argument("--precision", type=int, default=None, help="geohash 精度 1-12（默认 8）")
    p.add_argument("--d-tag", type=str, default=None, help="设备标识 d tag（默认 default）")
    p.add_argument("--expiration-secs", type=int, default=None, help="事件过期 TTL 秒数（默认 3600）")
    p.add_argument(
        "--recipient",
        type=str,
        action="append",
        default=None,
        help="加密接收者公钥（hex，可重复）；指定后发布 kind 30473",
    )
    if with_relays:
        p.add_argument("--relays", type=str, nargs="+", default=None, help=f"中继 URL（默认 {DEFAULT_RELAY}）")


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="nostr_sentinel")
    p.add_argument("-v", "--verbose", action="store_true", help="输出 DEBUG 日志")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_enc = sub.add_parser("encode", help="经纬度 -> geohash")
    p_enc.add_argument("--lat", type=float, required=True)
    p_enc.add_argument("--lon", type=float, required=True)
    p_enc.add_argument("--precision", type=int, default=8, help="geohash 精度 1-12")
    p_enc.set_defaults(func=_cmd_encode)

    p_dec = sub.add_parser("decode", help="geohash -> 中心点经纬度与格子范围")
    p_dec.add_argument("--geohash", type=str, required=True)
    p_dec.set_defaults(func=_cmd_decode)

    p_tpl = sub.add_parser("template", help="输出未签名的公开位置事件模板（JSON，供外部签名器使用）")
    p_tpl.add_argument("--lat", type=float, required=True)
    p_tpl.add_argument("--lon", type=float, required=True)
    p_tpl.add_argument("--accuracy", type=float, default=None, help="水平精度（米）")
    _add_tracking_args(p_tpl, with_relays=False)
    p_tpl.set_defaults(func=_cmd_template)

    p_pub = sub.add_parser("publish", help="发布一次位置")
    p_pub.add_argument("--lat", type=float, required=True)
    p_pub.add_argument("--lon", type=float, required=True)
    p_pub.add_argument("--accuracy", type=float, default=None, help="水平精度（米）")
    p_pub.add_argument("--secret-key", type=str, default=None, help="私钥 hex/nsec（或 SENTINEL_SECRET_KEY）")
    _add_tracking_args(p_pub)
    p_pub.set_defaults(func=_cmd_publish)

    p_trk = sub.add_parser("track", help="按间隔回放 Path.csv 轨迹并逐点发布")
    p_trk.add_argument("--csv", type=str, default="Path.csv", help="输入CSV路径")
    p_trk.add_argument("--interval", type=int, default=None, help="发布间隔秒数（默认 60）")
    p_trk.add_argument("--limit", type=int, default=None, help="最多发布多少个点")
    p_trk.add_argument("--secret-key", type=str, default=None, help="私钥 hex/nsec（或 SENTINEL_SECRET_KEY）")
    _add_tracking_args(p_trk)
    p_trk.set_defaults(func=_cmd_track)

    p_q = sub.add_parser("query", help="查询某公钥最新的位置事件")
    p_q.add_argument("--pubkey", type=str, required=True, help="公钥（hex 或 npub）")
    p_q.add_argument("--relays", type=str, nargs="+", default=[DEFAULT_RELAY], help="中继 URL")
    p_q.add_argument("--d-tag", type=str, default=None, help="只看某个 d tag")
    p_q.add_argument("--decrypt-with", type=str, default=None, help="用于解密 kind 30473 的私钥（hex/nsec）")
    p_q.add_argument("--limit", type=int, default=20, help="最多取多少条事件")
    p_q.add_argument("--timeout", type=float, default=10.0, help="拉取超时（秒）")
    p_q.add_argument("--tz", type=str, default=DEFAULT_TZ, help="显示时区（IANA）")
    p_q.add_argument("--json", action="store_true", help="输出JSON（便于后处理）")
    p_q.set_defaults(func=_cmd_query)

    p_f = sub.add_parser("follow", help="关注某公钥，长时间无位置更新时告警")
    p_f.add_argument("--pubkey", type=str, required=True, help="公钥（hex 或 npub）")
    p_f.add_argument("--alert-after", type=str, required=True, help="静默多久后告警，例如 30s / 5m / 1h")
    p_f.add_argument("--webhook", type=str, default=None, help="告警 POST 的 webhook URL")
    p_f.add_argument("--webhook-timeout", type=float, default=10.0, help="webhook 超时（秒）")
    p_f.add_argument("--check-interval", type=float, default=10.0, help="检查间隔（秒）")
    p_f.add_argument("--relays", type=str, nargs="+", default=[DEFAULT_RELAY], help="中继 URL")
    p_f.set_defaults(func=_cmd_follow)

    p_who = sub.add_parser("whoami", help="显示当前身份")
    p_who.add_argument("--secret-key", type=str, default=None, help="私钥 hex/nsec（或 SENTINEL_SECRET_KEY）")
    p_who.set_defaults(func=_cmd_whoami)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return int(args.func(args))
    except (InputValidationError, CodecError) as exc:
        print(f"输入错误：{exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
