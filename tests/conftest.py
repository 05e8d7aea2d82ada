"""Test configuration and fixtures for PaperSite tests."""

import os
import sys
import pytest
import tempfile
import shutil
import copy
from pathlib import Path
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from papersite_pkg.content import Post
from papersite_pkg.settings import PaperSiteSettings

# Fixed build time used across tests
NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_post(title='A Post', days_ago=1, **kwargs):
    """Build a Post published ``days_ago`` days before NOW."""
    kwargs.setdefault('pub_datetime', NOW - timedelta(days=days_ago))
    return Post(title=title, **kwargs)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def mock_content_dir(temp_dir):
    """Create a content directory with a small set of posts."""
    content_dir = Path(temp_dir) / 'content'
    posts_dir = content_dir / 'posts'
    posts_dir.mkdir(parents=True)

    (posts_dir / '01-hello.md').write_text("""---
title: Hello, World!
author: Jane Smith
pubDatetime: 2024-05-01T09:00:00Z
description: First post.
featured: true
categories:
  - General
  - .NET
tags:
  - welcome
---

# Hello

The first post.
""", encoding='utf-8')

    (posts_dir / '02-hello-again.md').write_text("""---
title: Hello World
pubDatetime: 2024-05-10T09:00:00Z
modDatetime: 2024-05-20T09:00:00Z
categories:
  - general
  - C#
tags: [welcome, csharp]
---

Same title slug as the first post, so it gets a numbered suffix.
""", encoding='utf-8')

    (posts_dir / '03-custom-image.md').write_text("""---
title: Posts With Pictures
slug: pictures
pubDatetime: 2024-05-15
ogImage: /images/pictures.png
categories: [N.E.T]
---

This post ships its own preview image.
""", encoding='utf-8')

    (posts_dir / '04-draft.md').write_text("""---
title: Work In Progress
pubDatetime: 2024-04-01
draft: true
categories: [Secret]
---

Not ready yet.
""", encoding='utf-8')

    (posts_dir / '05-scheduled.md').write_text("""---
title: Coming Soon
pubDatetime: 2024-07-01T00:00:00Z
categories: [Future]
---

Scheduled for next month.
""", encoding='utf-8')

    (posts_dir / '06-broken.md').write_text("""---
author: Nobody
pubDatetime: 2024-05-01
---

No title here.
""", encoding='utf-8')

    drafts_dir = posts_dir / '_drafts'
    drafts_dir.mkdir()
    (drafts_dir / 'ignored.md').write_text("""---
title: Ignored
pubDatetime: 2024-05-01
---
""", encoding='utf-8')

    return str(content_dir)


@pytest.fixture
def mock_output_dir(temp_dir):
    """Create a mock output directory."""
    output_dir = Path(temp_dir) / 'output'
    output_dir.mkdir()
    return str(output_dir)


@pytest.fixture
def site_settings(mock_content_dir, mock_output_dir, temp_dir):
    """Default settings pointed at the temporary content and output dirs."""
    settings = copy.deepcopy(PaperSiteSettings.DEFAULT_SETTINGS)
    settings.update({
        'website': 'https://blog.example.com/',
        'title': 'Example Blog',
        'author': 'Site Author',
        'desc': 'Have you tried turning it off and on again?',
        'post_per_page': 2,
        'post_per_index': 4,
        'content': mock_content_dir,
        'output': mock_output_dir,
        'font_cache': str(Path(temp_dir) / 'fonts'),
    })
    return settings
