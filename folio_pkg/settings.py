#!/usr/bin/env python3
"""
Settings loader for the Folio site generator.
Supports configuration from folio.yml, folio.yaml, or folio.json files.
"""

import os
import copy
import json
import yaml
from typing import Dict, Any, Optional


class FolioSettings:
    """Load and manage Folio configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'site_url': None,
        'site_title': 'Folio',
        'site_description': '',
        'author': '',
        'path_prefix': '',
        'posts_per_archive_page': 3,
        'default_language': 'en',
        'pages': {
            'home': '/',
            'blog': 'blog',
            'posts': 'posts',
            'tag': 'tag',
            'archive': 'archive',
            'projects': 'projects',
        },
        'social': {
            'github': None,
            'linkedin': None,
            'twitter': None,
            'email': None,
            'rss': 'rss.xml',
        },
        'tags': {},
        'feed': {
            'title': None,
            'limit': 10,
            'output': 'rss.xml',
        },
        'manifest': {
            'name': None,
            'short_name': None,
            'start_url': '/',
            'background_color': '#0C2744',
            'theme_color': '#0C2744',
            'display': 'standalone',
            'icon': None,
        },
        'icon_names': {
            'css': 'CSS',
            'html': 'HTML',
            'jquery': 'JQuery',
            'nodejs': 'Node.js',
            'vuejs': 'Vue.js',
            'gruntjs': 'Grunt.js',
        },
        'output': 'output',
        'content': 'content',
        'templates': 'templates',
        'assets': None,
        'robots': 'public',
        'minify': False,
        'log_dir': 'logs',
    }

    # Blocks merged key by key instead of being replaced
    NESTED_KEYS = ('pages', 'social', 'feed', 'manifest', 'icon_names')

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['folio.yml', 'folio.yaml', 'folio.json']

    # CLI flags whose names differ from the settings keys
    ARG_ALIASES = {
        'posts_per_page': 'posts_per_archive_page',
    }

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
                    self.settings = self._merge(self.settings, loaded_settings)
                    print(f"Loaded configuration from: {os.path.relpath(config_file)}")
            except (ValueError, IOError, OSError) as e:
                print(f"Warning: Failed to load config file {config_file}: {e}")

        return copy.deepcopy(self.settings)

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
                    data = yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    data = json.load(f) or {}
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

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        return data

    def _merge(self, base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Merge overrides into a copy of base, nested blocks key by key."""
        merged = copy.deepcopy(base)
        for key, value in overrides.items():
            if key in self.NESTED_KEYS and isinstance(value, dict):
                block = dict(merged.get(key) or {})
                block.update(value)
                merged[key] = block
            else:
                merged[key] = value
        return merged

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        sample_config = {
            'site_url': 'https://example.com',
            'site_title': 'My Portfolio',
            'site_description': 'developers blog',
            'author': 'Your Name',
            'posts_per_archive_page': 3,
            'pages': {'blog': 'blog', 'posts': 'posts', 'tag': 'tag', 'projects': 'projects'},
            'social': {
                'github': 'https://github.com/username',
                'email': 'you@example.com',
                'rss': 'rss.xml',
            },
            'tags': {
                'python': {'name': 'Python', 'description': 'Python is a general purpose programming language.'},
                'tooling': {'description': 'Tooling is anything built to speed up further development.'},
            },
            'output': 'output',
            'content': 'content',
            'templates': 'templates',
            'assets': 'assets',
            'robots': 'public',
            'minify': False,
        }

        filename = f'folio.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# Folio Configuration File\n")
                    f.write("# Site metadata, page slugs, social links and the tag dictionary\n\n")
                    yaml.safe_dump(sample_config, f, sort_keys=False, allow_unicode=True)
                elif file_format == 'json':
                    json.dump(sample_config, f, indent=2)
                else:
                    raise ValueError(f"Unsupported config file format: {file_format}")
        except PermissionError:
            raise PermissionError(f"Permission denied creating configuration file: {config_path}")
        except (IOError, OSError) as e:
            raise IOError(f"Error writing configuration file {config_path}: {e}")

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
        overrides = {}
        for key, value in args_dict.items():
            if value is None:
                continue
            overrides[self.ARG_ALIASES.get(key, key)] = value
        return self._merge(self.settings, overrides)
