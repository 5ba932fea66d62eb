"""Tests for logging setup."""

from loguru import logger

from locker_migrate.utils.logging import setup_logging


class TestSetupLogging:
    """Test setup_logging."""

    def teardown_method(self):
        """Drop the sinks added by the test."""
        logger.remove()

    def test_file_sink_carries_component(self, tmp_path):
        """Test bound components appear in the log file."""
        log_file = tmp_path / 'logs' / 'migration.log'

        setup_logging(level='INFO', log_file=str(log_file))
        logger.bind(component='BatchWriter').info('Batch 1 confirmed')
        logger.info('unbound message')
        logger.remove()

        content = log_file.read_text()
        assert 'BatchWriter | Batch 1 confirmed' in content
        assert 'locker-migrate | unbound message' in content

    def test_level_filters_file_sink(self, tmp_path):
        """Test records below the level are dropped."""
        log_file = tmp_path / 'migration.log'

        setup_logging(level='WARNING', log_file=str(log_file))
        logger.info('not written')
        logger.warning('Skipping token 4: no_owner')
        logger.remove()

        content = log_file.read_text()
        assert 'not written' not in content
        assert 'Skipping token 4: no_owner' in content
