#!/usr/bin/env python3
"""
Command-line interface for PaperSite.
"""

import os
import sys
import argparse
import time
from datetime import datetime
from .core import PaperSite
from .content import parse_date
from .settings import PaperSiteSettings

SAMPLE_POST = """---
title: Hello, World!
author: {author}
pubDatetime: {date}
description: The first post of this blog.
featured: true
categories:
  - General
tags:
  - welcome
---

Welcome to your new blog. Edit or delete this post in `content/posts/`.
"""


def create_starter_structure(author: str = 'Your Name') -> None:
    """Create the content directory with a sample post."""
    current_dir = os.getcwd()
    posts_dir = os.path.join(current_dir, 'content', 'posts')
    if os.path.exists(posts_dir):
        print("Directory already exists: content/posts")
    else:
        os.makedirs(posts_dir, exist_ok=True)
        print("Created directory: content/posts")

    post_path = os.path.join(posts_dir, 'hello-world.md')
    if os.path.exists(post_path):
        print("Sample post already exists: content/posts/hello-world.md")
    else:
        with open(post_path, 'w', encoding='utf-8') as f:
            f.write(SAMPLE_POST.format(author=author, date=datetime.now().strftime('%Y-%m-%dT%H:%M:%SZ')))
        print("Created sample post: content/posts/hello-world.md")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='PaperSite - blog index and preview image builder')
    parser.add_argument('--output', type=str,
                        help='Output directory for manifests and images')
    parser.add_argument('--content', type=str,
                        help='Content directory containing posts/')
    parser.add_argument('--website', type=str, help='Site URL')
    parser.add_argument('--title', type=str, help='Site title')
    parser.add_argument('--author', type=str, help='Default post author')
    parser.add_argument('--post-per-page', dest='post_per_page', type=int,
                        help='Number of posts per listing page')
    parser.add_argument('--post-per-index', dest='post_per_index', type=int,
                        help='Number of recent posts on the home page')
    parser.add_argument('--scheduled-post-margin', dest='scheduled_post_margin', type=float,
                        help='Minutes before publication time a scheduled post becomes visible')
    parser.add_argument('--og-font', dest='og_font', type=str,
                        help='Google font family used for preview images')
    parser.add_argument('--og-font-path', dest='og_font_path', type=str,
                        help='Local TrueType font used for preview images')
    parser.add_argument('--now', type=str,
                        help='Build as if it were this time (ISO 8601), for previews')
    parser.add_argument('--no-images', dest='images', action='store_false',
                        help='Skip preview image rendering')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file')
    parser.add_argument('--version', action='version', version='%(prog)s 1.0.0')
    return parser


def main(argv=None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Handle init command
    if args.init:
        settings_loader = PaperSiteSettings()
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")
        create_starter_structure()
        print("\nEdit the configuration file and your posts, then run 'papersite' to build.")
        return

    now = None
    if args.now:
        now = parse_date(args.now)
        if now is None:
            parser.error(f"invalid --now value: {args.now}")

    # Load settings from configuration file
    settings_loader = PaperSiteSettings()
    settings_loader.load_settings()

    # Command line arguments take precedence
    args_dict = {k: v for k, v in vars(args).items() if v is not None and k not in ('init', 'now', 'images')}
    final_settings = settings_loader.merge_with_args(args_dict)

    if final_settings['output'].startswith("~/"):
        final_settings['output'] = os.path.expanduser(final_settings['output'])

    overall_start_time = time.time()

    try:
        site = PaperSite(final_settings, now=now)
        try:
            site.build(images=args.images)
        finally:
            site.cleanup()

        total_time = time.time() - overall_start_time
        site.logger.info(f"Site build completed in {total_time:.6f} seconds.")
        site.logger.info(f"Total images generated: {site.images_generated}")
        if site.image_failures:
            site.logger.info(f"Total image failures: {site.image_failures}")

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
