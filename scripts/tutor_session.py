#!/usr/bin/env python3
"""Run a tutoring session from the terminal.

Type to answer the tutor. ``/mic`` toggles recording, ``/back`` leaves the
session, ``/quit`` exits. With ``--text-only`` no audio devices are touched and
the tutor's lines are printed instead of spoken.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from controller import (
    CaptureUnsupportedError,
    Screen,
    Sender,
    SessionController,
    SessionControllerConfig,
    TextOnlySpeech,
)
from llm import LearningMode, RetryPolicy, TutorAgent, TutorAgentConfig
from tts import KokoroConfig, KokoroStreamer


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Talk with the English tutor: capture/type → tutor reply → speech",
    )
    parser.add_argument("--topic", help="Lesson topic (prompted for when omitted)")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in LearningMode],
        default=None,
        help="conversation practice or vocabulary drill (prompted for when omitted)",
    )
    parser.add_argument("--llm-base-url", default="http://127.0.0.1:8000/v1", help="OpenAI-compatible base URL")
    parser.add_argument(
        "--llm-model",
        default="hugging-quants/Meta-Llama-3.1-8B-Instruct-GPTQ-INT4",
        help="Model name exposed by the endpoint",
    )
    parser.add_argument("--llm-api-key", default=None, help="API key (default: $TUTOR_LLM_API_KEY)")
    parser.add_argument("--llm-timeout", type=float, default=30.0, help="Per-request timeout in seconds")
    parser.add_argument("--retries", type=int, default=2, help="Retries after a failed tutor call (default 2)")
    parser.add_argument("--inactivity-timeout", type=float, default=7.0, help="Seconds of silence before a hint")
    parser.add_argument("--text-only", action="store_true", help="Print replies instead of speaking; no microphone")
    parser.add_argument("--kokoro-base-url", default="http://127.0.0.1:8880/v1", help="Kokoro base URL")
    parser.add_argument("--kokoro-voice", default="af_bella", help="Voice identifier (e.g. af_bella)")
    parser.add_argument("--kokoro-speed", type=float, default=0.85, help="Speech rate (below 1.0 is slower)")
    parser.add_argument("--asr-model", default="base.en", help="Faster-Whisper model size or directory")
    parser.add_argument("--asr-device", default="cpu", help="Faster-Whisper compute device (cuda or cpu)")
    parser.add_argument("--asr-compute-type", default="int8", help="Faster-Whisper compute type")
    parser.add_argument("--log-dir", type=Path, default=Path("logs/sessions"), help="Directory for JSONL session logs")
    return parser


def build_speech(args: argparse.Namespace, streamer: KokoroStreamer):
    if args.text_only:
        return TextOnlySpeech()

    from asr import FasterWhisperConfig, FasterWhisperTranscriber
    from controller.local_speech import LocalSpeech

    transcriber = FasterWhisperTranscriber(
        FasterWhisperConfig(
            model=args.asr_model,
            device=args.asr_device,
            compute_type=args.asr_compute_type,
        )
    )
    transcriber.warm_up()
    return LocalSpeech(transcriber=transcriber, synthesizer=streamer)


def print_new_messages(controller: SessionController, seen: list) -> None:
    messages = controller.messages
    if len(messages) < len(seen):
        seen.clear()
    for message in messages[len(seen):]:
        who = "Tutor" if message.sender is Sender.TUTOR else "You"
        print(f"{who}: {message.text}")
        seen.append(message.id)


async def read_line(prompt: str) -> Optional[str]:
    line = await asyncio.to_thread(_input, prompt)
    return None if line is None else line.strip()


def _input(prompt: str) -> Optional[str]:
    try:
        return input(prompt)
    except EOFError:
        return None


async def choose(controller: SessionController, args: argparse.Namespace) -> bool:
    """Walk topic and mode selection. Returns False when the user quits."""

    topic = args.topic
    mode = LearningMode(args.mode) if args.mode else None
    while controller.screen is not Screen.CHAT:
        if controller.screen is Screen.TOPIC_SELECT:
            topic = topic or await read_line("Topic? ")
            if topic is None or topic == "/quit":
                return False
            if topic:
                controller.select_topic(topic)
            topic = None
            continue
        if mode is None:
            raw = await read_line("Mode? [conversation/vocabulary, /back] ")
            if raw is None or raw == "/quit":
                return False
            if raw == "/back":
                controller.go_back()
                continue
            try:
                mode = LearningMode(raw.lower())
            except ValueError:
                print("Please type conversation or vocabulary.")
                continue
        controller.start_session(controller.topic or "", mode)
        mode = None
    return True


async def run(controller: SessionController, args: argparse.Namespace) -> None:
    seen: list = []
    controller.add_listener(lambda ctl: print_new_messages(ctl, seen))
    while True:
        if not await choose(controller, args):
            return
        args.topic = None
        args.mode = None
        while controller.screen is Screen.CHAT:
            line = await read_line("")
            if line is None or line == "/quit":
                return
            if line == "/back":
                controller.go_back()
            elif line == "/mic":
                try:
                    controller.toggle_recording()
                except CaptureUnsupportedError as exc:
                    print(f"{exc}. Please type instead.")
            elif line:
                controller.handle_user_utterance(line)


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    log_path = None
    if args.log_dir is not None:
        args.log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        log_path = args.log_dir / f"session_{timestamp}.jsonl"

    try:
        agent_cfg = TutorAgentConfig(
            base_url=args.llm_base_url,
            model=args.llm_model,
            api_key=args.llm_api_key,
            timeout=args.llm_timeout,
            retry=RetryPolicy(retries=args.retries),
        )
        kokoro_cfg = KokoroConfig(
            base_url=args.kokoro_base_url,
            voice=args.kokoro_voice,
            speed=args.kokoro_speed,
        )
        controller_cfg = SessionControllerConfig(
            inactivity_timeout=args.inactivity_timeout,
            log_path=log_path,
        )
    except ValueError as exc:
        parser.error(str(exc))
        return 2

    agent = TutorAgent(agent_cfg)
    streamer = KokoroStreamer(kokoro_cfg)
    try:
        speech = build_speech(args, streamer)
    except (ImportError, FileNotFoundError) as exc:
        print(f"Speech setup failed: {exc}", file=sys.stderr)
        return 1

    controller = SessionController(agent=agent, speech=speech, config=controller_cfg)

    with contextlib.ExitStack() as stack:
        stack.callback(agent.close)
        stack.callback(streamer.close)
        stack.callback(controller.close)
        try:
            asyncio.run(run(controller, args))
        except KeyboardInterrupt:
            print("\nInterrupted", file=sys.stderr)

    if log_path is not None:
        print(f"Logs written to {log_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
