"""
Contribution Mode — interactive capture → review → submit loop.

Listens to the landmark relay, shows environment readiness while idle,
records the configured number of attempts per word, then builds the
consensus, scores it and submits it (or explains why it can't).
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from prompt_toolkit import PromptSession
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from signcapture.api_client import ContributionClient
from signcapture.config import API_URL, LANDMARK_WS_URL
from signcapture.core import preview
from signcapture.core.environment import EnvironmentMonitor, EnvironmentReading
from signcapture.core.errors import AttemptAbortedError, InsufficientFramesError, QualityTooLowError
from signcapture.core.feed import LandmarkFeed
from signcapture.core.landmarks import Attempt
from signcapture.core.quality import QualityBreakdown, quality_label
from signcapture.core.recorder import AttemptRecorder, Progress, RecorderPhase, ScheduleCompletion
from signcapture.core.session import (
    ContributionSession,
    HandUse,
    SignClassification,
    SignMovement,
    new_anonymous_user_id,
)
from signcapture.core.submission import SubmissionResult, SubmissionStatus, apply_result, assemble
from signcapture.ws_client import LandmarkStreamClient

log = logging.getLogger("contribution_mode")
console = Console()


# ═════════════════════════════════════════════════════════════════════════════
#  Rendering helpers
# ═════════════════════════════════════════════════════════════════════════════

def _pct(v: float) -> str:
    return f"{v * 100:.0f}%"


def breakdown_table(breakdown: QualityBreakdown) -> Table:
    table = Table(title="Quality Breakdown", expand=False)
    table.add_column("Component")
    table.add_column("Weight", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Rating")
    table.add_row("Hand visibility", "50%", _pct(breakdown.hand_visibility),
                  breakdown.components.get("hand_visibility", quality_label(breakdown.hand_visibility)))
    table.add_row("Motion smoothness", "30%", _pct(breakdown.motion_smoothness),
                  breakdown.components.get("motion_smoothness", quality_label(breakdown.motion_smoothness)))
    table.add_row("Frame completeness", "20%", _pct(breakdown.frame_completeness),
                  breakdown.components.get("frame_completeness", quality_label(breakdown.frame_completeness)))
    table.add_row("Lighting", "-", _pct(breakdown.lighting_quality),
                  breakdown.components.get("lighting", ""))
    table.add_row("[bold]Overall[/bold]", "", f"[bold]{_pct(breakdown.overall)}[/bold]",
                  breakdown.components.get("overall", quality_label(breakdown.overall)))
    return table


def show_breakdown(breakdown: QualityBreakdown, passed: bool):
    console.print(breakdown_table(breakdown))
    color = "green" if passed else "red"
    tips = "\n".join(f"  • {r}" for r in breakdown.recommendations)
    console.print(Panel(tips or "  • -", title="Recommendations", border_style=color, expand=False))


def reading_line(reading: Optional[EnvironmentReading]) -> str:
    if reading is None:
        return "[dim]Waiting for landmarks from the camera…[/dim]"
    state = "[green]READY[/green]" if reading.can_proceed else "[yellow]NOT READY[/yellow]"
    line = (f"{state}  lighting {_pct(reading.lighting_quality)} ({reading.lighting_label})  "
            f"hands {_pct(reading.hand_visibility)} ({reading.hand_label})")
    if reading.message:
        line += f"\n[dim]{reading.message}[/dim]"
    return line


async def record_until_enter(recorder: AttemptRecorder,
                             wait_for_enter: Callable[[], Awaitable]) -> Attempt:
    """
    Run one recording and stop it on Enter. An Enter pressed before
    recording starts is ignored and the stop prompt is armed again.
    """
    record_task = asyncio.create_task(recorder.record())
    stop_task = None
    try:
        while True:
            stop_task = asyncio.create_task(wait_for_enter())
            done, _ = await asyncio.wait({record_task, stop_task},
                                         return_when=asyncio.FIRST_COMPLETED)
            if record_task in done:
                break
            if recorder.phase == RecorderPhase.RECORDING:
                recorder.stop()
                break
            log.debug("Enter ignored (phase=%s)", recorder.phase.value)
        return await record_task
    finally:
        if stop_task is not None and not stop_task.done():
            stop_task.cancel()
            await asyncio.gather(stop_task, return_exceptions=True)


# ═════════════════════════════════════════════════════════════════════════════
#  Contribution Mode
# ═════════════════════════════════════════════════════════════════════════════

class ContributionMode:
    """
    Word → classification → N attempts → review → submit.

    Every failure (too short, low quality, server rejection, network error)
    returns the user to a point where they can retake or resubmit; nothing
    here ends the session except success or choosing another word.
    """

    def __init__(self, stream_url: str = LANDMARK_WS_URL, api_url: str = API_URL,
                 require_ready: bool = False):
        self._stream_url = stream_url
        self._api_url = api_url
        self._require_ready = require_ready
        self._user_id = new_anonymous_user_id()
        self._prompt = PromptSession()
        self._status = None

        self._monitor = EnvironmentMonitor()
        self._recorder = AttemptRecorder(
            on_countdown=self._on_countdown,
            on_recording_started=self._on_recording_started,
            on_progress=self._on_progress,
            on_stopped=self._on_stopped,
        )

    def start(self):
        """Run the contribution loop (blocks until quit)."""
        console.print(Panel(
            "[bold cyan]CONTRIBUTE[/bold cyan] — record a sign for the community dictionary\n\n"
            "Each word is recorded several times; the attempts are aligned and\n"
            "averaged into one skeleton sequence before it is scored.\n\n"
            f"[dim]Landmark stream: {self._stream_url}[/dim]\n"
            f"[dim]Contribution API: {self._api_url}[/dim]\n"
            f"[dim]Anonymous id: {self._user_id}[/dim]\n\n"
            "[bold red]Press Ctrl+C to quit.[/bold red]",
            title="🤟 Contribution Mode",
            border_style="cyan",
            expand=False,
        ))
        try:
            asyncio.run(self._run_async())
        except KeyboardInterrupt:
            console.print("\n[dim]Contribution mode stopped.[/dim]")

    async def _run_async(self):
        feed = LandmarkFeed(self._recorder, self._monitor)
        stream = LandmarkStreamClient(self._stream_url)
        stream_task = asyncio.create_task(stream.run(on_landmarks=feed.offer))
        feed.start()

        try:
            async with ContributionClient(base_url=self._api_url) as client:
                while True:
                    word = await self._ask("Word to contribute (blank to quit): ")
                    if not word:
                        break
                    classification = await self._ask_classification()
                    session = ContributionSession(
                        word=word,
                        anonymous_user_id=self._user_id,
                        classification=classification,
                    )
                    await self._contribute(session, client)
        except (EOFError, KeyboardInterrupt):
            pass
        finally:
            self._recorder.abort()
            stream.stop()
            stream_task.cancel()
            await asyncio.gather(stream_task, return_exceptions=True)
            await feed.stop()

    # ── Prompts ──────────────────────────────────────────────────────────

    async def _ask(self, message: str) -> str:
        return (await self._prompt.prompt_async(message)).strip()

    async def _choose(self, message: str, options: dict[str, str]) -> str:
        while True:
            choice = (await self._ask(message)).lower()
            if choice in options:
                return options[choice]
            console.print(f"[dim]Please enter one of: {', '.join(options)}.[/dim]")

    async def _ask_classification(self) -> SignClassification:
        movement = await self._choose(
            "Is the sign static or dynamic? (s/d): ",
            {"s": "static", "static": "static", "d": "dynamic", "dynamic": "dynamic"},
        )
        hands = await self._choose(
            "One-handed or two-handed? (1/2): ",
            {"1": "one-handed", "one": "one-handed", "2": "two-handed", "two": "two-handed"},
        )
        return SignClassification(movement=SignMovement(movement), hand_use=HandUse(hands))

    # ── Word flow ────────────────────────────────────────────────────────

    async def _contribute(self, session: ContributionSession, client: ContributionClient):
        while True:
            if not await self._collect_attempts(session):
                console.print(f"[dim]Abandoned '{session.word}'.[/dim]")
                return

            action = await self._review(session, client)
            if action == "done" or action == "change":
                return
            if action == "retake":
                session.retake()

    async def _collect_attempts(self, session: ContributionSession) -> bool:
        while session.remaining_attempts:
            n = session.attempt_count + 1
            console.print(f"\n[bold]{session.word}[/bold] — attempt {n}/{session.target_attempts}")
            console.print(reading_line(self._monitor.last_reading))

            answer = (await self._ask("Press Enter to start recording (q to abandon): ")).lower()
            if answer in ("q", "quit"):
                return False
            reading = self._monitor.last_reading
            if self._require_ready and (reading is None or not reading.can_proceed):
                console.print("[yellow]Environment not ready yet.[/yellow]")
                continue

            try:
                attempt = await self._record_one()
            except InsufficientFramesError as e:
                console.print(f"[red]✗ {e}[/red]")
                continue
            except AttemptAbortedError:
                console.print("[dim]Attempt cancelled.[/dim]")
                continue

            session.add_attempt(attempt)
            console.print(
                f"  [green]✓[/green] {attempt.frame_count} frames, {attempt.duration:.1f}s — "
                f"quick score {_pct(attempt.quality)} ({quality_label(attempt.quality)})"
            )
        return True

    async def _record_one(self) -> Attempt:
        with console.status("Get ready…") as status:
            self._status = status
            try:
                return await record_until_enter(self._recorder, lambda: self._prompt.prompt_async(""))
            finally:
                self._status = None

    async def _review(self, session: ContributionSession, client: ContributionClient) -> str:
        try:
            prepared = assemble(session)
        except InsufficientFramesError as e:
            console.print(f"[red]✗ {e}[/red]")
            return await self._after_rejection()
        except QualityTooLowError as e:
            console.print(Panel(f"[bold red]❌ Quality Too Low[/bold red]\n{e}",
                                border_style="red", expand=False))
            show_breakdown(e.breakdown, passed=False)
            return await self._after_rejection(frames=session.consensus().frames)

        console.print(Panel(
            f"Consensus of {session.attempt_count} attempts → {prepared.frame_count} frames "
            f"(attempt lengths {prepared.extras['attempt_lengths']})\n"
            f"Trend: {prepared.payload['improvement_trend']}  "
            f"variance {prepared.payload['quality_variance']:.4f}",
            title=f"Review — {session.word}",
            border_style="bright_blue",
            expand=False,
        ))
        show_breakdown(prepared.breakdown, passed=True)

        while True:
            action = await self._choose(
                "[s]ubmit, [p]review, [r]etake, [c]hange word: ",
                {"s": "submit", "p": "preview", "r": "retake", "c": "change"},
            )
            if action == "preview":
                await asyncio.to_thread(preview.play, list(session.consensus().frames))
                continue
            if action != "submit":
                return action

            with console.status("Submitting…"):
                result = await client.submit(prepared.payload)
            apply_result(session, result)
            self._show_result(result)
            if result.ok:
                return "done"

    async def _after_rejection(self, frames=None) -> str:
        options = {"r": "retake", "c": "change"}
        prompt_text = "[r]etake, [c]hange word"
        if frames:
            options["p"] = "preview"
            prompt_text += ", [p]review"
        while True:
            action = await self._choose(prompt_text + ": ", options)
            if action != "preview":
                return action
            await asyncio.to_thread(preview.play, list(frames))

    def _show_result(self, result: SubmissionResult):
        if result.ok:
            progress = result.progress
            console.print(Panel(
                f"[bold green]🎉 Thank you![/bold green]\n\n"
                f"Total contributions for this word: {progress.total_contributions}\n"
                f"Progress toward ground truth: {progress.progress_percentage:.0f}%",
                border_style="green",
                expand=False,
            ))
            return

        title = "❌ Rejected" if result.status == SubmissionStatus.REJECTED else "⚠ Network error"
        body = result.reason
        if result.quality_score is not None:
            body += f"\nScore: {_pct(result.quality_score)} (minimum 50% required)"
        console.print(Panel(body, title=title, border_style="red", expand=False))
        if result.breakdown is not None:
            show_breakdown(result.breakdown, passed=False)
        console.print("[dim]Your attempts are kept; you can submit again or retake.[/dim]")

    # ── Recorder callbacks ───────────────────────────────────────────────

    def _on_countdown(self, value: int):
        if self._status is not None:
            self._status.update(f"[bold yellow]Starting in {value}…[/bold yellow]")

    def _on_recording_started(self):
        if self._status is not None:
            self._status.update("[bold red]🔴 Recording — sign now (Enter to stop)[/bold red]")

    def _on_progress(self, progress: Progress):
        if self._status is None:
            return
        hint = "  [yellow]finishing up…[/yellow]" if progress.finishing_up else ""
        self._status.update(
            f"[bold red]🔴 Recording[/bold red] {progress.percent:3.0f}%  "
            f"{progress.remaining:.1f}s left  {progress.frame_count} frames{hint}"
        )

    def _on_stopped(self, effect: ScheduleCompletion):
        if self._status is not None:
            self._status.update(f"[bold green]✓ Recording complete[/bold green] ({effect.frame_count} frames)")
