"""
Unit tests for imagesync.config module
"""
import json
import logging
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from imagesync.config import (
    DEFAULT_LOG_FORMAT,
    apply_env_overrides,
    configure_logging,
    get_config_path,
    get_default_config,
    load_config,
    merge_configs,
)


class TestConfigManagement(unittest.TestCase):
    """Test configuration loading"""

    def setUp(self):
        """Set up test environment"""
        self.temp_dir = tempfile.mkdtemp()
        self.env = patch.dict(os.environ, {'HOME': self.temp_dir}, clear=False)
        self.env.start()
        for key in list(os.environ):
            if key.startswith('IMAGESYNC_'):
                del os.environ[key]

    def tearDown(self):
        """Clean up test environment"""
        self.env.stop()
        shutil.rmtree(self.temp_dir)

    def test_get_default_config(self):
        """Test default configuration structure"""
        config = get_default_config()

        self.assertEqual(config['registry']['timeout_seconds'], 30)
        self.assertEqual(config['registry']['page_size'], 1000)
        self.assertEqual(config['copy']['skopeo_binary'], 'skopeo')
        self.assertEqual(config['copy']['retry_times'], 0)
        self.assertEqual(config['logging']['level'], 'INFO')
        self.assertEqual(config['logging']['format'], DEFAULT_LOG_FORMAT)

    def test_load_config_no_file(self):
        """Test loading config when no file exists"""
        config = load_config()

        self.assertEqual(config, get_default_config())
        self.assertEqual(get_config_path(), Path(self.temp_dir) / '.imagesync' / 'config.json')

    def test_load_json_config(self):
        """Test loading a JSON config file from the home directory"""
        config_dir = Path(self.temp_dir) / '.imagesync'
        config_dir.mkdir()
        (config_dir / 'config.json').write_text(json.dumps({'copy': {'retry_times': 2}}))

        config = load_config()

        self.assertEqual(config['copy']['retry_times'], 2)
        self.assertEqual(config['copy']['skopeo_binary'], 'skopeo')

    def test_load_yaml_config_from_env_path(self):
        """Test IMAGESYNC_CONFIG pointing at a YAML file"""
        path = Path(self.temp_dir) / 'custom.yaml'
        path.write_text("registry:\n  page_size: 100\nlogging:\n  level: DEBUG\n")
        os.environ['IMAGESYNC_CONFIG'] = str(path)

        config = load_config()

        self.assertEqual(config['registry']['page_size'], 100)
        self.assertEqual(config['logging']['level'], 'DEBUG')

    def test_load_toml_config(self):
        """Test loading a TOML config file"""
        path = Path(self.temp_dir) / 'config.toml'
        path.write_text('[copy]\nskopeo_binary = "/opt/skopeo"\n')
        os.environ['IMAGESYNC_CONFIG'] = str(path)

        config = load_config()

        self.assertEqual(config['copy']['skopeo_binary'], '/opt/skopeo')

    def test_invalid_config_falls_back_to_defaults(self):
        """Test that an unreadable config file is reported, not fatal"""
        path = Path(self.temp_dir) / 'broken.json'
        path.write_text('{not json')
        os.environ['IMAGESYNC_CONFIG'] = str(path)

        with self.assertLogs('imagesync', level='ERROR'):
            config = load_config()

        self.assertEqual(config, get_default_config())

    def test_env_overrides(self):
        """Test IMAGESYNC_SECTION_KEY overrides"""
        os.environ['IMAGESYNC_REGISTRY_TIMEOUT_SECONDS'] = '60'
        os.environ['IMAGESYNC_COPY_SKOPEO_BINARY'] = '/usr/local/bin/skopeo'
        os.environ['IMAGESYNC_UNKNOWN_KEY'] = 'ignored'

        config = apply_env_overrides(get_default_config())

        self.assertEqual(config['registry']['timeout_seconds'], 60)
        self.assertEqual(config['copy']['skopeo_binary'], '/usr/local/bin/skopeo')
        self.assertNotIn('unknown', config)

    def test_env_override_keeps_type(self):
        """Test that a non-numeric value does not replace an integer setting"""
        os.environ['IMAGESYNC_COPY_RETRY_TIMES'] = 'often'
        os.environ['IMAGESYNC_REGISTRY_PAGE_SIZE'] = '250'

        with self.assertLogs('imagesync', level='WARNING'):
            config = apply_env_overrides(get_default_config())

        self.assertEqual(config['copy']['retry_times'], 0)
        self.assertEqual(config['registry']['page_size'], 250)

    def test_merge_configs(self):
        """Test recursive merge"""
        merged = merge_configs(
            {'registry': {'timeout_seconds': 30, 'page_size': 1000}, 'copy': {}},
            {'registry': {'page_size': 10}, 'extra': True},
        )

        self.assertEqual(merged['registry'], {'timeout_seconds': 30, 'page_size': 10})
        self.assertTrue(merged['extra'])


class TestConfigureLogging(unittest.TestCase):
    """Test logging setup"""

    def tearDown(self):
        logger = logging.getLogger('imagesync')
        logger.handlers = []
        logger.setLevel(logging.NOTSET)
        logger.propagate = True

    def test_single_stderr_handler(self):
        configure_logging('debug')
        configure_logging('warning')

        logger = logging.getLogger('imagesync')
        self.assertEqual(len(logger.handlers), 1)
        self.assertEqual(logger.level, logging.WARNING)
        self.assertFalse(logger.propagate)
