"""Tests for the preview image routes."""

from unittest.mock import Mock

from papersite_pkg.endpoints import get_static_paths, post_og_image, site_og_image
from papersite_pkg.errors import RenderError
from papersite_pkg.og_image import OgImageRenderer
from conftest import NOW, make_post


class TestStaticPaths:
    """Test cases for get_static_paths."""

    def test_only_visible_posts_without_og_image(self):
        plain = make_post('Plain Post')
        custom = make_post('Custom', og_image='/custom.png')
        draft = make_post('Draft', draft=True)
        future = make_post('Future', days_ago=-5)
        paths = get_static_paths([plain, custom, draft, future], NOW)
        assert paths == {'plain-post': plain}

    def test_title_collisions_get_suffixes(self):
        first = make_post('Hello World', days_ago=3)
        second = make_post('Hello, World!', days_ago=1)
        paths = get_static_paths([first, second], NOW)
        assert list(paths.items()) == [('hello-world', first), ('hello-world-2', second)]

    def test_slug_override_is_ignored_for_images(self):
        post = make_post('Title Based', slug='custom')
        assert list(get_static_paths([post], NOW)) == ['title-based']

    def test_unslugifiable_title_is_skipped(self):
        assert get_static_paths([make_post('???')], NOW) == {}


class TestImageResponses:
    """Test cases for the image handlers."""

    def test_site_image(self, site_settings):
        response = site_og_image(OgImageRenderer(site_settings))
        assert response.status == 200
        assert response.ok
        assert response.headers['Content-Type'] == 'image/png'
        assert response.headers['Cache-Control'] == 'public, max-age=3600'
        assert response.body.startswith(b'\x89PNG')

    def test_post_image(self, site_settings):
        post = make_post('Routing Works')
        paths = get_static_paths([post], NOW)
        response = post_og_image(OgImageRenderer(site_settings), paths, 'routing-works')
        assert response.status == 200
        assert response.headers['Content-Type'] == 'image/png'
        assert response.body == OgImageRenderer(site_settings).render_post_image(post)

    def test_unknown_slug_is_404(self):
        renderer = Mock()
        response = post_og_image(renderer, {}, 'missing')
        assert response.status == 404
        renderer.render_post_image.assert_not_called()

    def test_render_failure_is_500_and_not_cacheable(self):
        renderer = Mock()
        renderer.render_post_image.side_effect = RenderError('boom')
        paths = {'broken': make_post('Broken')}
        response = post_og_image(renderer, paths, 'broken')
        assert response.status == 500
        assert not response.ok
        assert response.headers['Cache-Control'] == 'no-store'
        assert response.headers['Content-Type'] != 'image/png'

    def test_site_render_failure_is_500(self):
        renderer = Mock()
        renderer.render_site_image.side_effect = RenderError('boom')
        response = site_og_image(renderer)
        assert response.status == 500
        assert response.headers['Cache-Control'] == 'no-store'

    def test_one_failure_does_not_affect_others(self, site_settings):
        """Test a failing render leaves other routes working."""
        good = make_post('Good Post')
        bad = make_post('Bad Post')
        real = OgImageRenderer(site_settings)

        def render(post):
            if post is bad:
                raise RenderError('boom')
            return real.render_post_image(post)

        renderer = Mock()
        renderer.render_post_image.side_effect = render
        paths = get_static_paths([good, bad], NOW)
        assert post_og_image(renderer, paths, 'bad-post').status == 500
        assert post_og_image(renderer, paths, 'good-post').status == 200
