from __future__ import annotations

import signal
import sys

from voicetutor.app.config import resolve_args, save_user_config
from voicetutor.app.diagnostics import hint_for_exception, summarize_exception
from voicetutor.app.logging_setup import setup_app_logger
from voicetutor.app.runtime import SessionRunner
from voicetutor.audio.mic import MicError, SoundDeviceMicSource
from voicetutor.live.prompt import STUDENT_LEVELS, TARGET_LANGUAGES
from voicetutor.ui.bridge import SessionViewBus

DEBUG_TAIL = 60


def main(argv: list[str] | None = None) -> int:
    args = resolve_args(argv)
    logger, log_dir, log_path = setup_app_logger(debug=bool(args.debug))
    logger.info("app_start", extra={"config_path": str(getattr(args, "config", "")), "argv": argv or []})

    if args.list_devices:
        try:
            print(SoundDeviceMicSource.list_devices())
        except MicError as e:
            print(f"{e}\nHint: {hint_for_exception(str(e))}")
            return 1
        return 0

    from PyQt6 import QtCore, QtWidgets
    from voicetutor.app.main_window_qt import MainWindow

    app = QtWidgets.QApplication(sys.argv)

    bus = SessionViewBus(maxsize=max(1, int(args.queue_maxsize)))
    runner = SessionRunner(args, bus, logger=logger)
    main_window = MainWindow(
        TARGET_LANGUAGES,
        STUDENT_LEVELS,
        language=str(args.target_language),
        level=str(args.level),
    )
    main_window.set_status_text("Click start to begin")

    def _refresh_debug() -> None:
        if main_window.debug_visible:
            main_window.set_debug_text(runner.diagnostics.format_lines(DEBUG_TAIL))

    def _start_from_ui(language: str, level: str) -> None:
        if language != args.target_language or level != args.level:
            args.target_language = language
            args.level = level
            try:
                save_user_config(
                    {"target_language": language, "level": level}, config_path=args.config
                )
            except (OSError, ValueError):
                logger.exception("settings_save_failed")
        try:
            runner.start(language, level)
        except Exception as e:
            summary = summarize_exception(str(e))
            logger.exception("session_start_failed")
            main_window.set_status_text(f"Failed to start: {summary}", attention=True)
            QtWidgets.QMessageBox.critical(
                main_window,
                "Voice Tutor",
                f"{summary}\n\nHint: {hint_for_exception(summary)}\nSee log: {log_path}",
            )

    def _stop_from_ui() -> None:
        runner.stop()

    main_window.start_requested.connect(_start_from_ui)
    main_window.stop_requested.connect(_stop_from_ui)
    main_window.debug_toggled.connect(lambda _shown: _refresh_debug())

    timer = QtCore.QTimer()

    def _on_tick() -> None:
        view = bus.latest()
        if view is not None:
            main_window.apply_view(view)
        _refresh_debug()

    timer.timeout.connect(_on_tick)
    timer.start(max(10, int(args.poll_ms)))

    def _on_about_to_quit() -> None:
        logger.info("app_quit")
        timer.stop()
        runner.shutdown()

    app.aboutToQuit.connect(_on_about_to_quit)
    signal.signal(signal.SIGINT, lambda *_: app.quit())

    if args.debug:
        main_window.set_debug_visible(True)
    main_window.show()

    print("Voice Tutor ready. Pick a language and level, then press Start. Use headphones.")
    print(f"Logs: {log_path}")
    logger.info("ui_ready", extra={"log_dir": str(log_dir)})
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
