"""Interactive entry point for the spinning donut animation."""

from __future__ import annotations

import argparse
import asyncio
import math
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional, Sequence, cast

from .donut.engine import DEFAULT_PALETTE, FrameMatrix, FrameRenderer, TorusConfig, compose_matrix
from .donut.terminal import TerminalController

ASCII_PALETTE = ".,-~:;=!*#$@"

PAUSE_KEYS = (" ", "p")
QUIT_KEYS = ("q", "Q")


def build_parser() -> argparse.ArgumentParser:
    defaults = TorusConfig()
    parser = argparse.ArgumentParser(description="Spinning character-art donut for your terminal")
    parser.add_argument("--fps", type=float, default=60.0, help="Target frames per second (default: 60)")
    parser.add_argument(
        "--frames",
        type=int,
        default=0,
        help="Run for a fixed number of frames (0 = infinite)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=None,
        help="Frame width in characters (default: fit the terminal)",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=None,
        help="Frame height in characters (default: fit the terminal)",
    )
    parser.add_argument(
        "--theta-spacing",
        type=float,
        default=defaults.theta_spacing,
        help=f"Cross-section sampling step in radians (default: {defaults.theta_spacing})",
    )
    parser.add_argument(
        "--phi-spacing",
        type=float,
        default=defaults.phi_spacing,
        help=f"Revolution sampling step in radians (default: {defaults.phi_spacing})",
    )
    parser.add_argument("--r1", type=float, default=defaults.r1, help="Tube radius (default: 1)")
    parser.add_argument("--r2", type=float, default=defaults.r2, help="Ring radius (default: 2)")
    parser.add_argument(
        "--distance",
        type=float,
        default=defaults.k2,
        help="Distance from the eye to the donut centre (default: 5)",
    )
    parser.add_argument(
        "--palette",
        type=str,
        default=DEFAULT_PALETTE,
        help="Shading glyphs ordered dimmest to brightest",
    )
    parser.add_argument("--rate-a", type=float, default=0.01, help="Rotation about A per frame (default: 0.01)")
    parser.add_argument("--rate-b", type=float, default=0.003, help="Rotation about B per frame (default: 0.003)")
    parser.add_argument("--start-a", type=float, default=0.5 * math.pi, help="Initial angle A (default: pi/2)")
    parser.add_argument("--start-b", type=float, default=0.0, help="Initial angle B (default: 0)")
    parser.add_argument(
        "--async",
        dest="async_mode",
        action="store_true",
        help="Render frames on a worker thread",
    )
    parser.add_argument(
        "--no-hud",
        action="store_true",
        help="Hide the FPS and key help overlay",
    )
    return parser


@dataclass
class AnimationState:
    """Orientation angles advanced by the driver, plus play/pause state."""

    a: float
    b: float
    rate_a: float
    rate_b: float
    paused: bool = False

    def advance(self) -> None:
        self.a += self.rate_a
        self.b += self.rate_b

    def handle_key(self, key: str) -> bool:
        """Apply a key press. Returns False when the animation should stop."""
        if key in QUIT_KEYS:
            return False
        if key in PAUSE_KEYS:
            self.paused = not self.paused
        return True


@dataclass
class RuntimeConfig:
    torus: TorusConfig
    fps: float
    frame_duration: float
    frames: int
    start_a: float
    start_b: float
    rate_a: float
    rate_b: float
    show_hud: bool
    async_mode: bool
    warnings: list[str] = field(default_factory=list)


def _stdout_can_encode(text: str) -> bool:
    encoding = getattr(sys.stdout, "encoding", None) or "ascii"
    try:
        text.encode(encoding)
    except (UnicodeEncodeError, LookupError):
        return False
    return True


def _setup_runtime(args: argparse.Namespace) -> RuntimeConfig:
    warnings: list[str] = []

    columns, lines = TerminalController().size_tuple()
    # Leave the last terminal line free so the frame does not scroll.
    fit = max(1, min(columns, lines - 1))
    # k1 scales with the width alone, so a square grid keeps the torus in bounds.
    if args.width is None and args.height is None:
        width = height = fit
    else:
        width = args.width if args.width is not None else args.height
        height = args.height if args.height is not None else width
    if width > columns or height > lines - 1:
        warnings.append(f"Frame {width}x{height} is larger than the terminal ({columns}x{lines}); output will scroll")
    if width > height:
        warnings.append(f"Frame {width}x{height} is wider than tall; the torus will be clipped at the top and bottom")

    palette = args.palette
    if not _stdout_can_encode(palette):
        warnings.append(f"Terminal cannot display palette {palette!r}; using {ASCII_PALETTE!r}")
        palette = ASCII_PALETTE

    torus = TorusConfig(
        width=width,
        height=height,
        theta_spacing=args.theta_spacing,
        phi_spacing=args.phi_spacing,
        r1=args.r1,
        r2=args.r2,
        k2=args.distance,
        palette=palette,
    )
    torus.validate()

    fps = max(1.0, args.fps)
    return RuntimeConfig(
        torus=torus,
        fps=fps,
        frame_duration=1.0 / fps,
        frames=max(0, args.frames),
        start_a=args.start_a,
        start_b=args.start_b,
        rate_a=args.rate_a,
        rate_b=args.rate_b,
        show_hud=not args.no_hud,
        async_mode=bool(args.async_mode),
        warnings=warnings,
    )


def _emit_warnings(warnings: Sequence[str]) -> None:
    if not warnings:
        return
    for warning in warnings:
        sys.stderr.write(f"[donut] {warning}\n")
    sys.stderr.flush()


def _hud_lines(state: AnimationState, fps: float) -> tuple[str, ...]:
    status = "PAUSED" if state.paused else f"FPS {fps:5.1f}"
    return (status, "space: pause  q: quit")


def _blit_hud(frame: FrameMatrix, lines: Sequence[str]) -> None:
    if not lines or not frame:
        return
    width = len(frame[0])
    max_width = max(len(line) for line in lines)
    start_x = max(0, width - max_width - 1)
    for row_offset, line in enumerate(lines):
        if row_offset >= len(frame):
            break
        x = start_x
        for char in line:
            if 0 <= x < width:
                frame[row_offset][x] = char
            x += 1


def _compose_with_hud(frame: FrameMatrix, state: AnimationState, fps: float, show_hud: bool) -> str:
    if not show_hud:
        return compose_matrix(frame)
    overlay = [list(row) for row in frame]
    _blit_hud(overlay, _hud_lines(state, fps))
    return compose_matrix(overlay)


def _smooth_fps(smoothed: float, delta: float) -> float:
    instantaneous = 1.0 / max(delta, 1e-6)
    return smoothed * 0.85 + instantaneous * 0.15


def _run_sync_loop(config: RuntimeConfig) -> None:
    renderer = FrameRenderer(config.torus)
    state = AnimationState(config.start_a, config.start_b, config.rate_a, config.rate_b)
    controller = TerminalController()

    with controller:
        frame_counter = 0
        last_frame: Optional[FrameMatrix] = None
        last_frame_start: float | None = None
        smoothed_fps = config.fps

        try:
            while True:
                frame_start = time.perf_counter()
                if last_frame_start is not None:
                    smoothed_fps = _smooth_fps(smoothed_fps, frame_start - last_frame_start)
                last_frame_start = frame_start

                if not all(state.handle_key(key) for key in controller.poll_keys()):
                    break

                if state.paused:
                    if last_frame is not None:
                        controller.draw(_compose_with_hud(last_frame, state, smoothed_fps, config.show_hud))
                    time.sleep(config.frame_duration)
                    continue

                last_frame = cast(FrameMatrix, renderer.render_frame(state.a, state.b, output_format="matrix"))
                controller.draw(_compose_with_hud(last_frame, state, smoothed_fps, config.show_hud))
                state.advance()

                frame_counter += 1
                if config.frames and frame_counter >= config.frames:
                    break

                sleep_time = config.frame_duration - (time.perf_counter() - frame_start)
                if sleep_time > 0:
                    time.sleep(sleep_time)
        except KeyboardInterrupt:  # pragma: no cover - interactive loop
            controller.restore()
            sys.stdout.write("\nInterrupted. Bye!\n")
            sys.stdout.flush()


async def _run_async_loop(config: RuntimeConfig) -> None:
    renderer = FrameRenderer(config.torus)
    state = AnimationState(config.start_a, config.start_b, config.rate_a, config.rate_b)
    controller = TerminalController()

    try:
        with controller, ThreadPoolExecutor(max_workers=1) as executor:
            frame_counter = 0
            last_frame: Optional[FrameMatrix] = None
            last_frame_start: float | None = None
            smoothed_fps = config.fps

            while True:
                frame_start = time.perf_counter()
                if last_frame_start is not None:
                    smoothed_fps = _smooth_fps(smoothed_fps, frame_start - last_frame_start)
                last_frame_start = frame_start

                if not all(state.handle_key(key) for key in controller.poll_keys()):
                    break

                if state.paused:
                    if last_frame is not None:
                        controller.draw(_compose_with_hud(last_frame, state, smoothed_fps, config.show_hud))
                    await asyncio.sleep(config.frame_duration)
                    continue

                last_frame = cast(
                    FrameMatrix,
                    await renderer.render_async(state.a, state.b, executor=executor, output_format="matrix"),
                )
                controller.draw(_compose_with_hud(last_frame, state, smoothed_fps, config.show_hud))
                state.advance()

                frame_counter += 1
                if config.frames and frame_counter >= config.frames:
                    break

                sleep_time = config.frame_duration - (time.perf_counter() - frame_start)
                if sleep_time > 0:
                    await asyncio.sleep(sleep_time)
    except (KeyboardInterrupt, asyncio.CancelledError):  # pragma: no cover - interactive loop
        controller.restore()
        sys.stdout.write("\nInterrupted. Bye!\n")
        sys.stdout.flush()


def run(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _setup_runtime(args)
    except ValueError as exc:
        parser.error(str(exc))
    _emit_warnings(config.warnings)

    if config.async_mode:
        asyncio.run(_run_async_loop(config))
    else:
        _run_sync_loop(config)


def main() -> None:
    run()


if __name__ == "__main__":
    main()
