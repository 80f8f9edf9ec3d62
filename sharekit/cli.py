import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional

from . import __version__
from .download import download_record
from .errors import ResolutionError
from .extractors import ShareResolver
from .http import create_client
from .models import MediaRecord
from .utils import ts_to_iso

logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
logger = logging.getLogger("sharekit")

CONCURRENCY = int(os.getenv("SHAREKIT_CONCURRENCY", "4"))

PLATFORM_NAMES = {
    "douyin": "抖音",
    "xiaohongshu": "小红书",
    "pipixia": "皮皮虾",
    "weibo": "微博",
    "kuaishou": "快手",
    "bilibili": "B站",
    "xigua": "西瓜视频",
}


def _fmt_num(n: int) -> str:
    if n >= 100000000:
        return f"{n/100000000:.1f}亿"
    if n >= 10000:
        return f"{n/10000:.1f}万"
    return str(n)


def _fmt_size(n: Optional[int]) -> str:
    return f" ({n/1024/1024:.1f} MB)" if n else ""


# ─── 格式化输出 ─────────────────────────────────────────────────────────────────

def format_result(r: MediaRecord) -> str:
    lines = []
    lines.append(f"{'═'*60}")
    lines.append(f"  平台: {PLATFORM_NAMES.get(r.platform, r.platform)}")
    if r.create_time:
        lines.append(f"  发布: {ts_to_iso(r.create_time)}")
    lines.append(f"{'─'*60}")
    lines.append(f"  标题: {r.title}")
    lines.append(f"  作者: {r.author.name} (uid: {r.author.uid})")
    if r.music and r.music.title:
        lines.append(f"  音乐: {r.music.title} - {r.music.author}")

    s = r.statistics
    if s:
        stat_parts = []
        if s.views:      stat_parts.append(f"播放 {_fmt_num(s.views)}")
        if s.likes:      stat_parts.append(f"点赞 {_fmt_num(s.likes)}")
        if s.comments:   stat_parts.append(f"评论 {_fmt_num(s.comments)}")
        if s.favorites:  stat_parts.append(f"收藏 {_fmt_num(s.favorites)}")
        if s.shares:     stat_parts.append(f"分享 {_fmt_num(s.shares)}")
        if stat_parts:
            lines.append(f"  互动: {' | '.join(stat_parts)}")

    if r.tags:
        lines.append(f"  标签: {'  '.join('#'+t for t in sorted(r.tags))}")

    lines.append(f"{'─'*60}")
    if r.images:
        for i, img in enumerate(r.images):
            lines.append(f"  🖼  图片 [{i}]: {img.url[:100]}")
            if img.live_photo_url:
                lines.append(f"      实况: {img.live_photo_url[:100]}")
    elif r.video_url:
        lines.append(f"  🎬 视频: {r.video_url[:100]}")

    if r.cover_url:
        lines.append(f"  🖼  封面: {r.cover_url[:100]}")

    if r.video_qualities:
        lines.append(f"  📺 可用清晰度:")
        for q in r.video_qualities:
            lines.append(f"    {q.quality}{_fmt_size(q.size)}: {q.url[:80]}")

    lines.append(f"{'═'*60}")
    return "\n".join(lines)


def format_brief(r: MediaRecord) -> str:
    """One-line brief summary."""
    pname = PLATFORM_NAMES.get(r.platform, r.platform)
    title = (r.title or "").replace("\n", " ")[:60]
    kind = f"{len(r.images)} 图" if r.images else "视频"
    parts = [f"[{pname}]", f"@{r.author.name}", f'"{title}"', kind]
    s = r.statistics
    if s:
        stats = []
        if s.views:  stats.append(f"▶{_fmt_num(s.views)}")
        if s.likes:  stats.append(f"❤{_fmt_num(s.likes)}")
        if s.comments: stats.append(f"💬{_fmt_num(s.comments)}")
        if stats:
            parts.append(" ".join(stats))
    return " | ".join(parts)


def _render(r: MediaRecord, fmt: str) -> str:
    if fmt == "brief":
        return format_brief(r)
    return format_result(r)


# ─── 批量 ──────────────────────────────────────────────────────────────────────

def read_links(links_file: str) -> list[str]:
    with open(links_file, encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]


async def batch_resolve(
    resolver: ShareResolver, links: list[str], concurrency: int = CONCURRENCY
) -> list[tuple[str, Optional[MediaRecord], Optional[ResolutionError]]]:
    """Resolve ``links`` concurrently; results keep input order."""
    sem = asyncio.Semaphore(max(1, concurrency))
    total = len(links)

    async def one(i: int, link: str):
        async with sem:
            print(f"[{i}/{total}] 处理中... {link[:60]}", file=sys.stderr)
            try:
                return link, await resolver.resolve(link), None
            except ResolutionError as e:
                logger.warning(f"批量解析失败 [{link}]: {e}")
                return link, None, e

    return await asyncio.gather(*(one(i, link) for i, link in enumerate(links, 1)))


# ─── CLI ───────────────────────────────────────────────────────────────────────

async def _run(args) -> int:
    fmt = "brief" if args.brief else "default"
    async with create_client() as client:
        resolver = ShareResolver(client)

        if args.batch:
            outcomes = await batch_resolve(resolver, read_links(args.batch), args.concurrency)
            records = [r for _, r, _ in outcomes if r is not None]
            errors = [(link, e) for link, _, e in outcomes if e is not None]
            if args.json:
                print(json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2))
            else:
                for r in records:
                    print(_render(r, fmt))
            if args.download:
                for r in records:
                    await download_record(client, r, args.download)

            print(f"\n{'═'*40}", file=sys.stderr)
            print(f"  批量处理完成: 成功 {len(records)}/{len(outcomes)}", file=sys.stderr)
            if errors:
                print(f"  失败 {len(errors)} 个:", file=sys.stderr)
                for link, err in errors:
                    print(f"    - {link[:50]}: {str(err)[:50]}", file=sys.stderr)
            print(f"{'═'*40}", file=sys.stderr)
            return 1 if errors and not records else 0

        result = await resolver.resolve(args.url)
        if args.json:
            print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        else:
            print(_render(result, fmt))

        if args.download:
            print("\n📥 下载媒体文件:")
            paths = await download_record(client, result, args.download)
            if paths:
                print(f"\n✅ 下载完成，共 {len(paths)} 个文件 → {args.download}/")
            else:
                print("\n⚠️  没有可下载的媒体")
    return 0


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(
        prog="sharekit",
        description=f"sharekit v{__version__} - 短视频/图文分享链接解析工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
支持平台: 抖音 | 小红书 | 皮皮虾 | 微博 | 快手 | B站 | 西瓜视频

示例:
  sharekit "7.92 复制打开抖音，看看【xxx】 https://v.douyin.com/xxx/"
  sharekit "https://www.bilibili.com/video/BVxxx" --json
  sharekit --batch links.txt --brief --download downloads/
""",
    )
    parser.add_argument("url", nargs="?", help="分享链接或分享文案")
    parser.add_argument("--json", "-j", action="store_true", help="JSON 格式输出")
    parser.add_argument("--brief", action="store_true", help="极简一行输出")
    parser.add_argument("--batch", "-b", metavar="FILE", help="批量处理: 从文件读取链接列表")
    parser.add_argument("--concurrency", type=int, default=CONCURRENCY, help=f"批量并发数 (默认{CONCURRENCY})")
    parser.add_argument("--download", "-d", metavar="DIR", help="下载媒体文件到目录")
    parser.add_argument("--verbose", "-v", action="store_true", help="详细日志")
    parser.add_argument("--version", action="version", version=f"sharekit {__version__}")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger("sharekit").setLevel(logging.DEBUG)

    if not args.url and not args.batch:
        parser.print_help()
        sys.exit(1)

    try:
        code = asyncio.run(_run(args))
    except (ResolutionError, OSError) as e:
        print(f"❌ 错误: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
