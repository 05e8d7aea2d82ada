#!/usr/bin/env python3
"""
Settings loader for PaperSite.
Supports configuration from papersite.yml, papersite.yaml, or papersite.json files.
"""

import os
import json
import copy
import yaml
from datetime import timedelta
from typing import Dict, Any, Optional


class PaperSiteSettings:
    """Load and manage PaperSite configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'website': 'https://example.com/',
        'author': 'Anonymous',
        'profile': None,
        'desc': 'A personal blog.',
        'title': 'PaperSite',
        'og_image': None,
        'light_and_dark_mode': True,
        'post_per_index': 4,
        'post_per_page': 4,
        'scheduled_post_margin': 15,  # minutes
        'show_archives': True,
        'show_back_button': True,
        'edit_post': {
            'url': None,
            'text': 'Suggest Changes',
            'append_file_path': False,
        },
        'locale': {
            'lang': 'en',
            'lang_tag': [],
        },
        'socials': [],
        'content': 'content',
        'output': 'output',
        'og_font': None,
        'og_font_path': None,
        'font_cache': '.cache/fonts',
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['papersite.yml', 'papersite.yaml', 'papersite.json']

    # Keys whose values are mappings merged key by key rather than replaced
    NESTED_KEYS = ('edit_post', 'locale')

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = copy.deepcopy(self.DEFAULT_SETTINGS)
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from configuration file if it exists.

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            try:
                loaded_settings = self._load_config_file(config_file)
                if loaded_settings:
                    self._merge(self.settings, loaded_settings)
                    print(f"Loaded configuration from: {os.path.relpath(config_file)}")
            except (ValueError, IOError, OSError) as e:
                print(f"Warning: Failed to load config file {config_file}: {e}")

        return copy.deepcopy(self.settings)

    def _merge(self, target: Dict[str, Any], loaded: Dict[str, Any]) -> None:
        for key, value in loaded.items():
            if key in self.NESTED_KEYS and isinstance(value, dict) and isinstance(target.get(key), dict):
                target[key].update(value)
            else:
                target[key] = value

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    loaded = yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    loaded = json.load(f) or {}
                else:
                    raise ValueError(f"Unsupported config file format: {file_ext}")
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        except PermissionError:
            raise PermissionError(f"Permission denied reading configuration file: {config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_path}: {e}")

        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        return loaded

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        sample_config = {
            'website': 'https://example.com/',
            'title': 'My Blog',
            'author': 'Your Name',
            'desc': 'Notes and articles.',
            'post_per_index': 4,
            'post_per_page': 4,
            'scheduled_post_margin': 15,
            'show_archives': True,
            'locale': {'lang': 'en', 'lang_tag': ['en-US']},
            'socials': [{'name': 'Github', 'href': 'https://github.com/your-name'}],
            'content': 'content',
            'output': 'output',
        }

        filename = f'papersite.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# PaperSite Configuration File\n\n")
                    f.write("# Site information\n")
                    f.write("website: https://example.com/\n")
                    f.write("title: My Blog\n")
                    f.write("author: Your Name\n")
                    f.write("desc: Notes and articles.\n\n")
                    f.write("# Listings\n")
                    f.write("post_per_index: 4\n")
                    f.write("post_per_page: 4\n")
                    f.write("scheduled_post_margin: 15  # minutes\n")
                    f.write("show_archives: true\n\n")
                    f.write("# Locale\n")
                    f.write("locale:\n")
                    f.write("  lang: en\n")
                    f.write("  lang_tag:\n")
                    f.write("    - en-US\n\n")
                    f.write("# Social links\n")
                    f.write("socials:\n")
                    f.write("  - name: Github\n")
                    f.write("    href: https://github.com/your-name\n\n")
                    f.write("# Build settings\n")
                    f.write("content: content\n")
                    f.write("output: output\n")
                    f.write("# og_font: IBM Plex Mono  # Google font for preview images\n")
                elif file_format == 'json':
                    json.dump(sample_config, f, indent=2)
                else:
                    raise ValueError(f"Unsupported config file format: {file_format}")
        except PermissionError:
            raise PermissionError(f"Permission denied creating configuration file: {config_path}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(self.settings)

        for key, value in args_dict.items():
            if value is not None:
                merged[key] = value

        return merged


def validate_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check the values the indexing code depends on.

    Raises:
        ValueError: for a non-positive page size or a negative margin.
    """
    for key in ('post_per_index', 'post_per_page'):
        value = settings.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"'{key}' must be a positive integer, got {value!r}")

    margin = settings.get('scheduled_post_margin')
    if isinstance(margin, bool) or not isinstance(margin, (int, float)) or margin < 0:
        raise ValueError(f"'scheduled_post_margin' must be a non-negative number of minutes, got {margin!r}")

    if not settings.get('title'):
        raise ValueError("'title' must not be empty")

    return settings


def scheduled_margin(settings: Dict[str, Any]) -> timedelta:
    """The scheduled post margin as a timedelta."""
    return timedelta(minutes=settings.get('scheduled_post_margin') or 0)
