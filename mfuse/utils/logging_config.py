import sys
from loguru import logger


class LoggerManager:
    def __init__(self):
        self.console_sink_id = None
        self.file_sink_id = None
        self.level = "INFO"

        # Always remove the default handler
        logger.remove()

    def enable_console(self):
        if self.console_sink_id is None:
            self.console_sink_id = logger.add(sys.stdout, level=self.level, colorize=True)

    def disable_console(self):
        if self.console_sink_id is not None:
            logger.remove(self.console_sink_id)
            self.console_sink_id = None

    def configure(self, config):
        """Apply a LoggingConfig: level, optional rotating file sink, JSON output."""
        self.level = config.level.upper()
        if self.console_sink_id is not None:
            self.disable_console()
            self.enable_console()

        if self.file_sink_id is not None:
            logger.remove(self.file_sink_id)
            self.file_sink_id = None

        if config.enable_file_logging and config.log_file:
            self.file_sink_id = logger.add(
                config.log_file,
                level=self.level,
                rotation=config.max_file_size,
                retention=f"{config.retention_days} days",
                serialize=config.enable_json,
                enqueue=True,
            )


log_manager = LoggerManager()
