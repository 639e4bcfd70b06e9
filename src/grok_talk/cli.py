"""
grok-talk command line entry point.

Hold the talk key (default: Right Ctrl) and speak; release and Grok's answer
is read aloud. Press the quit key (default: Esc) to exit.
"""

import argparse
import sys
from typing import List, Optional

from rich.panel import Panel

from grok_talk.errors import NoInputDeviceError
from grok_talk.hotkeys import parse_hotkey
from grok_talk.session import open_session
from grok_talk.settings import load_config, load_settings, save_config
from grok_talk.transcriber import list_input_devices
from grok_talk.voice_logger import console, print_log_location, setup_logger, teardown_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grok-talk",
        description="Push-to-talk voice assistant: hold the hotkey, speak, hear Grok reply",
    )
    parser.add_argument("--talk-key", type=str, default=None,
                        help="Hold-to-talk hotkey (default: ctrl_r). Examples: ctrl_r, f9, alt+s, ctrl_r+alt_gr")
    parser.add_argument("--quit-key", type=str, default=None, help="Key that exits the assistant (default: esc)")
    parser.add_argument("--save-hotkey", action="store_true", help="Save the talk/quit keys to config")
    parser.add_argument("--device", type=int, default=None, help="Input device index to use")
    parser.add_argument("--list-devices", action="store_true", help="List input devices and exit")
    parser.add_argument("--listen-timeout", type=float, default=None,
                        help="Longest phrase to capture per press, in seconds (default: 15)")
    parser.add_argument("--config", type=str, default=None, help="Path to config.json (default: ./config.json)")
    parser.add_argument("--log-file", type=str, default=None,
                        help="Session log path (default: outputs/grok_talk.log)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging on the console")
    return parser


def _wait_for_acknowledgement() -> None:
    try:
        console.input("[yellow]Press Enter to exit...[/]")
    except (EOFError, KeyboardInterrupt):
        pass


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    for option, value in (("--talk-key", args.talk_key), ("--quit-key", args.quit_key)):
        if value is not None:
            try:
                parse_hotkey(value)
            except ValueError as e:
                parser.error(f"{option}: {e}")

    if args.list_devices:
        list_input_devices()
        return 0

    settings = load_settings(
        overrides={
            "talk_key": args.talk_key,
            "quit_key": args.quit_key,
            "input_device": args.device,
            "listen_timeout": args.listen_timeout,
            "log_file": args.log_file,
        },
        config_path=args.config,
    )

    logger = setup_logger("grok_talk", log_file=settings.log_file, verbose=args.verbose)

    if args.save_hotkey:
        config = load_config(args.config)
        config["talk_key"] = settings.talk_key
        config["quit_key"] = settings.quit_key
        save_config(config, args.config)
        logger.info(f"Hotkeys saved to config: talk={settings.talk_key}, quit={settings.quit_key}")

    mode = "[red]demo mode (XAI_API_KEY not set)[/]" if settings.demo_mode else f"[green]{settings.model}[/]"
    welcome_text = f"""[bold cyan]Grok Talk[/] ({sys.platform})

[yellow]Hotkey:[/] [bold green]{settings.talk_key}[/] (hold to talk)
[yellow]Exit:[/] [bold green]{settings.quit_key}[/]
[yellow]Model:[/] {mode}

Logs appear below"""
    console.print(Panel(welcome_text, style="blue", expand=False))
    print_log_location()

    try:
        with open_session(settings) as loop:
            loop.run()
    except NoInputDeviceError as e:
        logger.error(f"Startup failed: {e}")
        console.print("[red]No microphone found.[/] Connect an input device and start grok-talk again.")
        _wait_for_acknowledgement()
        return 0
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping...[/]")
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        teardown_logger("grok_talk")

    console.print("[cyan]Goodbye![/]\n")
    return 0
