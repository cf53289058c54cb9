import sys

from snapshot_exporter.config import Config
from snapshot_exporter.exporter import Exporter, RunReport

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2


def exit_code_for(report: RunReport) -> int:
    if report.ok:
        return EXIT_OK
    if report.fatal_error is not None:
        return EXIT_FATAL
    return EXIT_PARTIAL


def main():
    """Main entry point."""
    try:
        config = Config.from_environment()
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(EXIT_FATAL)

    exporter = Exporter(config)
    report = exporter.run()
    sys.exit(exit_code_for(report))

if __name__ == '__main__':
    main()
