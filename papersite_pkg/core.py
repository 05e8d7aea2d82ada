import os
import json
import logging
import threading
from datetime import datetime, timezone
from concurrent.futures import ProcessPoolExecutor, as_completed

from .content import load_posts
from .endpoints import PNG_HEADERS, ImageResponse, get_static_paths, post_og_image, site_og_image
from .errors import RenderError
from .fonts import GoogleFontLoader
from .og_image import OgImageRenderer
from .posts import (
    assign_slugs,
    get_archives,
    get_featured_posts,
    get_posts_by_category,
    get_posts_by_tag,
    get_recent_posts,
    get_unique_categories,
    get_unique_tags,
    get_visible_posts,
    iter_pages,
)
from .settings import scheduled_margin, validate_settings

# Thread-local storage for renderer instances in worker processes
thread_local = threading.local()

# Image counts at or above this use a process pool
MULTIPROCESSING_THRESHOLD = 12


def initializer(settings):
    """Create one renderer per worker process."""
    font_loader = GoogleFontLoader(settings['font_cache'])
    thread_local.renderer = OgImageRenderer(settings, font_loader)


def render_post_image(slug, post):
    """Worker task: returns (slug, png_bytes, error_message)."""
    try:
        return slug, thread_local.renderer.render_post_image(post), None
    except RenderError as e:
        return slug, None, str(e)


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        allowed_messages = [
            "Site build completed in",
            "Total posts loaded:",
            "Total posts listed:",
            "Total images generated:",
            "Total image failures:",
            "Building listing manifests",
            "Building taxonomy manifests",
            "Building archives",
            "Rendering preview images",
        ]
        if record.levelno >= logging.WARNING:
            return True
        return any(msg in record.getMessage() for msg in allowed_messages)


class PaperSite:
    """
    Builds the listing manifests and preview images of a blog.

    ``now`` fixes the clock used for scheduled posts; it defaults to the
    time the build starts.
    """

    def __init__(self, settings, now=None, log_to_file=True):
        self.settings = validate_settings(settings)
        self.content_dir = settings['content']
        self.output_dir = settings['output']
        self.now = now or datetime.now(timezone.utc)
        self.margin = scheduled_margin(settings)
        self.log_to_file = log_to_file

        self.posts = []
        self.slugs = {}
        self._slug_by_id = {}
        self.visible_posts = []
        self.image_paths = {}
        self._image_slug_by_id = {}
        self.posts_loaded = 0
        self.images_generated = 0
        self.image_failures = 0
        self.manifests_written = 0

        self.setup_logging()

        if not os.path.isdir(self.content_dir):
            raise FileNotFoundError(f"Content directory not found: {self.content_dir}")
        os.makedirs(self.output_dir, exist_ok=True)

        self.font_loader = GoogleFontLoader(settings['font_cache'])
        self.renderer = OgImageRenderer(settings, self.font_loader)

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('PaperSite')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(console_handler)

            if self.log_to_file:
                # File handler for all logs, library modules included
                logs_dir = os.path.join(os.getcwd(), 'logs')
                os.makedirs(logs_dir, exist_ok=True)
                log_filename = datetime.now().strftime('papersite_%Y-%m-%d_%H-%M-%S.log')
                file_handler = logging.FileHandler(os.path.join(logs_dir, log_filename))
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
                self.logger.addHandler(file_handler)
                logging.getLogger('papersite_pkg').addHandler(file_handler)
                logging.getLogger('papersite_pkg').setLevel(logging.DEBUG)

    # Loading

    def load_posts(self):
        """Load posts from ``<content>/posts`` and assign their slugs."""
        posts_dir = os.path.join(self.content_dir, 'posts')
        self.posts = load_posts(posts_dir, default_author=self.settings.get('author') or '')
        self.posts_loaded = len(self.posts)

        # Slugs are unique across the whole corpus, drafts included.
        self.slugs = assign_slugs(self.posts, skip_invalid=True)
        self._slug_by_id = {id(post): slug for slug, post in self.slugs.items()}
        self.visible_posts = [
            post for post in get_visible_posts(self.posts, self.now, self.margin)
            if self.slug_for(post) is not None
        ]
        self.image_paths = get_static_paths(
            [post for post in self.posts if self.slug_for(post) is not None], self.now, self.margin)
        self._image_slug_by_id = {id(post): slug for slug, post in self.image_paths.items()}
        self.logger.info(f"Total posts loaded: {self.posts_loaded}")
        self.logger.info(f"Total posts listed: {len(self.visible_posts)}")
        return self.posts

    def slug_for(self, post):
        return self._slug_by_id.get(id(post))

    # Manifests

    def og_image_url(self, post):
        if post.og_image:
            return post.og_image
        image_slug = self._image_slug_by_id.get(id(post))
        if image_slug:
            return f"/posts/{image_slug}/index.png"
        return self.settings.get('og_image') or '/og.png'

    def post_summary(self, post):
        slug = self.slug_for(post)
        return {
            'title': post.title,
            'slug': slug,
            'permalink': f"/posts/{slug}/",
            'description': post.description,
            'author': post.author,
            'pub_datetime': post.pub_datetime.isoformat(),
            'mod_datetime': post.mod_datetime.isoformat() if post.mod_datetime else None,
            'featured': post.featured,
            'categories': post.categories,
            'tags': post.tags,
            'og_image': self.og_image_url(post),
            'canonical_url': post.canonical_url,
        }

    def write_json(self, relative_path, data):
        """Write ``data`` as JSON to ``<output>/<relative_path>``."""
        output_path = os.path.join(self.output_dir, relative_path)
        os.makedirs(os.path.dirname(output_path), exist_ok=True)
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            self.manifests_written += 1
            self.logger.debug(f"Wrote manifest: {output_path}")
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to write manifest {output_path}: {e}")
            return False
        return True

    def write_paginated(self, base_dir, posts, extra=None):
        """``<base>/index.json`` for page 1, ``<base>/page/<n>/index.json`` for the rest."""
        per_page = self.settings['post_per_page']
        for page in iter_pages(posts, per_page):
            page_dir = base_dir if page.number == 1 else os.path.join(base_dir, 'page', str(page.number))
            data = dict(extra or {})
            data.update({
                'current_page': page.number,
                'total_pages': page.total_pages,
                'total_posts': page.total_items,
                'previous': page.previous,
                'next': page.next,
                'page_numbers': page.page_numbers,
                'posts': [self.post_summary(post) for post in page.items],
            })
            self.write_json(os.path.join(page_dir, 'index.json'), data)

    def build_index_manifest(self):
        """Home page: featured posts plus the most recent others."""
        self.write_json('index.json', {
            'title': self.settings['title'],
            'desc': self.settings.get('desc'),
            'featured': [self.post_summary(post) for post in get_featured_posts(self.visible_posts)],
            'recent': [self.post_summary(post) for post in
                       get_recent_posts(self.visible_posts, self.settings['post_per_index'])],
            'socials': self.settings.get('socials') or [],
        })

    def build_post_listings(self):
        self.logger.info("Building listing manifests")
        self.write_paginated('posts', self.visible_posts)

        for index, post in enumerate(self.visible_posts):
            newer = self.visible_posts[index - 1] if index > 0 else None
            older = self.visible_posts[index + 1] if index + 1 < len(self.visible_posts) else None
            data = self.post_summary(post)
            data['previous'] = self.slug_for(newer) if newer else None
            data['next'] = self.slug_for(older) if older else None
            self.write_json(os.path.join('posts', data['slug'], 'index.json'), data)

    def build_taxonomy_listings(self):
        self.logger.info("Building taxonomy manifests")

        categories = get_unique_categories(self.visible_posts, self.now, self.margin)
        self.write_json(os.path.join('categories', 'index.json'), [
            {'category': entry.category, 'category_name': entry.category_name} for entry in categories
        ])
        for entry in categories:
            self.write_paginated(
                os.path.join('categories', entry.category),
                get_posts_by_category(self.visible_posts, entry.category),
                {'category': entry.category, 'category_name': entry.category_name},
            )

        tags = get_unique_tags(self.visible_posts, self.now, self.margin)
        self.write_json(os.path.join('tags', 'index.json'), [
            {'tag': entry.category, 'tag_name': entry.category_name} for entry in tags
        ])
        for entry in tags:
            self.write_paginated(
                os.path.join('tags', entry.category),
                get_posts_by_tag(self.visible_posts, entry.category),
                {'tag': entry.category, 'tag_name': entry.category_name},
            )

    def build_archives(self):
        if not self.settings.get('show_archives'):
            return
        self.logger.info("Building archives")
        archives = get_archives(self.visible_posts)
        self.write_json(os.path.join('archives', 'index.json'), [
            {
                'year': year,
                'months': [
                    {'month': month, 'posts': [self.post_summary(post) for post in posts]}
                    for month, posts in months.items()
                ],
            }
            for year, months in archives.items()
        ])

    # Images

    def write_image(self, relative_path, response):
        output_path = os.path.join(self.output_dir, relative_path)
        if not response.ok:
            # Failed renders never leave a file behind to be cached.
            self.image_failures += 1
            if os.path.exists(output_path):
                os.remove(output_path)
            return False
        os.makedirs(os.path.dirname(output_path), exist_ok=True)
        try:
            with open(output_path, 'wb') as f:
                f.write(response.body)
            self.images_generated += 1
            self.logger.debug(f"Wrote image: {output_path}")
        except (IOError, OSError) as e:
            self.image_failures += 1
            self.logger.error(f"Failed to write image {output_path}: {e}")
            return False
        return True

    def render_images(self):
        """Render ``og.png`` and one ``posts/<slug>/index.png`` per post needing it."""
        self.logger.info("Rendering preview images")
        self.write_image('og.png', site_og_image(self.renderer))

        if len(self.image_paths) >= MULTIPROCESSING_THRESHOLD:
            self.logger.debug(f"Rendering {len(self.image_paths)} images with {os.cpu_count()} workers")
            self._render_with_multiprocessing()
        else:
            self._render_single_threaded()

    def _render_single_threaded(self):
        for slug in self.image_paths:
            response = post_og_image(self.renderer, self.image_paths, slug)
            self.write_image(os.path.join('posts', slug, 'index.png'), response)

    def _render_with_multiprocessing(self):
        with ProcessPoolExecutor(
            max_workers=os.cpu_count(),
            initializer=initializer,
            initargs=(self.settings,)
        ) as executor:
            futures = {
                executor.submit(render_post_image, slug, post): slug
                for slug, post in self.image_paths.items()
            }
            for future in as_completed(futures):
                slug = futures[future]
                image_path = os.path.join('posts', slug, 'index.png')
                try:
                    _, body, error = future.result()
                except Exception as e:
                    self.logger.error(f"Image worker failed for '{slug}': {e}")
                    self.write_image(image_path, ImageResponse(status=500, body=b''))
                    continue
                if error:
                    self.logger.error(f"Post image rendering failed for '{slug}': {error}")
                    self.write_image(image_path, ImageResponse(status=500, body=b''))
                else:
                    self.write_image(image_path, ImageResponse(status=200, body=body, headers=dict(PNG_HEADERS)))

    # Build

    def build(self, images=True):
        """Main build process."""
        self.logger.debug("Starting site build...")
        self.load_posts()
        self.build_index_manifest()
        self.build_post_listings()
        self.build_taxonomy_listings()
        self.build_archives()
        if images:
            self.render_images()

    def cleanup(self):
        """Close the font download session."""
        try:
            self.font_loader.close()
        except Exception as e:
            self.logger.debug(f"Ignoring error during cleanup: {e}")
