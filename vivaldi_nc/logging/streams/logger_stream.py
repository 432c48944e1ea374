import datetime
import io
import os
import pathlib
import sys
import threading
from collections import defaultdict
from typing import (
    Callable,
    Dict,
    TypeVar,
)

import msgspec

from vivaldi_nc.logging.config.logging_config import LoggingConfig
from vivaldi_nc.logging.config.stream_type import StreamType
from vivaldi_nc.logging.models import Entry, Log, LogLevel

T = TypeVar('T', bound=Entry)


class LoggerStream:
    """
    Synchronous structured log stream.

    Entries are rendered through a template to stdout or stderr, or written
    as msgspec-encoded JSON lines when a log file or directory is set.
    Level filtering and output selection come from LoggingConfig.
    """

    def __init__(
        self,
        name: str | None = None,
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
    ) -> None:
        if name is None:
            name = "default"

        self._name = name
        self._default_template = template
        self._default_logfile = filename
        self._default_log_directory = directory

        self._config = LoggingConfig()
        self._files: Dict[str, io.BufferedWriter] = {}
        self._file_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._stream_lock = threading.Lock()
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    def enabled(self, level: LogLevel) -> bool:
        return self._closed is False and self._config.enabled(self._name, level)

    def log(
        self,
        entry: T,
        template: str | None = None,
        path: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        filename: str | None = None
        directory: str | None = None

        if path:
            logfile_path = pathlib.Path(path)
            is_logfile = len(logfile_path.suffix) > 0

            filename = logfile_path.name if is_logfile else None
            directory = str(logfile_path.parent.absolute()) if is_logfile else str(logfile_path.absolute())

        if template is None:
            template = self._default_template

        if filename is None:
            filename = self._default_logfile

        if directory is None:
            directory = self._default_log_directory or self._config.directory

        if filename or directory:
            self._log_to_file(
                entry,
                filename=filename,
                directory=directory,
                filter=filter,
            )

        else:
            self._log(
                entry,
                template=template,
                filter=filter,
            )

    def _log(
        self,
        entry: T,
        template: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        if self.enabled(entry.level) is False:
            return

        if filter and filter(entry) is False:
            return

        if template is None:
            template = "{timestamp} - {level} - {thread_id} - {filename}:{function_name}.{line_number} - {message}"

        log_file, line_number, function_name = self._find_caller()

        stream = sys.stdout if self._config.output == StreamType.STDOUT else sys.stderr

        line = entry.to_template(
            template,
            context={
                "filename": log_file,
                "function_name": function_name,
                "line_number": line_number,
                "thread_id": threading.get_native_id(),
                "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            },
        )

        with self._stream_lock:
            stream.write(line + "\n")
            stream.flush()

    def _log_to_file(
        self,
        entry: T,
        filename: str | None = None,
        directory: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        if self.enabled(entry.level) is False:
            return

        if filter and filter(entry) is False:
            return

        if filename is None:
            filename = "logs.json"

        if directory is None:
            directory = os.path.join(os.getcwd(), "logs")

        logfile_path = self._to_logfile_path(filename, directory)

        log_file, line_number, function_name = self._find_caller()

        log = Log(
            entry=entry,
            logger=self._name,
            filename=log_file,
            function_name=function_name,
            line_number=line_number,
        )

        with self._file_locks[logfile_path]:
            try:
                logfile = self._files.get(logfile_path)
                if logfile is None or logfile.closed:
                    logfile = self._open_file(logfile_path)

                logfile.write(msgspec.json.encode(log) + b"\n")
                logfile.flush()

            except OSError as err:
                error_template = "{timestamp} - {level} - {thread_id}.{filename}:{function_name}.{line_number} - {error}"

                sys.stderr.write(
                    entry.to_template(
                        error_template,
                        context={
                            "filename": log_file,
                            "function_name": function_name,
                            "line_number": line_number,
                            "error": str(err),
                            "thread_id": threading.get_native_id(),
                            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                        },
                    )
                    + "\n"
                )

    def _open_file(self, logfile_path: str) -> io.BufferedWriter:
        pathlib.Path(logfile_path).parent.mkdir(parents=True, exist_ok=True)

        logfile = open(logfile_path, "ab")
        self._files[logfile_path] = logfile

        return logfile

    def _to_logfile_path(
        self,
        filename: str,
        directory: str,
    ) -> str:
        return str(pathlib.Path(directory, filename).absolute())

    def close(self):
        self._closed = True

        for logfile_path, logfile in list(self._files.items()):
            with self._file_locks[logfile_path]:
                if logfile.closed is False:
                    logfile.close()

        self._files.clear()

    def _find_caller(self):
        """
        Find the stack frame of the caller so that we can note the source
        file name, line number and function name.
        """
        frame = sys._getframe(3)
        code = frame.f_code

        return (
            code.co_filename,
            frame.f_lineno,
            code.co_name,
        )
