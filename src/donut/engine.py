"""Torus geometry constants and the per-frame character rasterizer."""

from __future__ import annotations

import asyncio
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

FrameMatrix = List[List[str]]

DEFAULT_PALETTE = ".:-=+£#%@"


@dataclass(frozen=True, slots=True)
class TorusConfig:
    """Startup constants for the torus, the camera and the output grid.

    The light direction is fixed at ``(0, 1, -1)``. ``k2`` must exceed
    ``r1 + r2`` so that every surface point stays in front of the eye.
    """

    width: int = 100
    height: int = 100
    theta_spacing: float = 0.02
    phi_spacing: float = 0.01
    r1: float = 1.0
    r2: float = 2.0
    k2: float = 5.0
    palette: str = DEFAULT_PALETTE

    @property
    def k1(self) -> float:
        # Scales the torus to roughly three quarters of the screen width.
        return self.width * self.k2 * 3.0 / (8.0 * (self.r1 + self.r2))

    def validate(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError("TorusConfig requires width and height >= 1")
        if self.theta_spacing <= 0 or self.phi_spacing <= 0:
            raise ValueError("Sampling spacings must be positive")
        if self.r1 <= 0:
            raise ValueError("Minor radius r1 must be positive")
        if self.r2 <= self.r1:
            raise ValueError("Major radius r2 must exceed minor radius r1")
        if self.k2 <= self.r1 + self.r2:
            raise ValueError("Camera distance k2 must exceed r1 + r2")
        if not self.palette:
            raise ValueError("Shading palette must not be empty")
        if any(char.isspace() for char in self.palette):
            raise ValueError("Shading palette must not contain blank characters")


def _angle_table(spacing: float) -> Tuple[Tuple[float, float], ...]:
    table: List[Tuple[float, float]] = []
    angle = 0.0
    two_pi = 2.0 * math.pi
    while angle < two_pi:
        table.append((math.cos(angle), math.sin(angle)))
        angle += spacing
    return tuple(table)


class FrameRenderer:
    """Software rasterizer producing one character frame per (A, B) orientation.

    The renderer owns a character buffer and an inverse-depth buffer, both
    ``width * height`` cells stored row-major. They are cleared at the start of
    every frame; zero depth means nothing has been drawn in that cell.
    Concurrent calls on the same instance are serialized; use one renderer per
    worker to render in parallel.
    """

    _BLANK = " "

    def __init__(self, config: TorusConfig | None = None) -> None:
        if config is None:
            config = TorusConfig()
        config.validate()
        self.config = config
        self.width = config.width
        self.height = config.height
        self.palette = config.palette
        self._k1 = config.k1
        size = self.width * self.height
        self._chars: List[str] = [self._BLANK] * size
        self._z_inv: List[float] = [0.0] * size
        self._theta_table = _angle_table(config.theta_spacing)
        self._phi_table = _angle_table(config.phi_spacing)
        self._lock = threading.Lock()

    def render_frame(
        self, a: float, b: float, *, output_format: str = "text"
    ) -> Union[str, FrameMatrix]:
        if output_format not in ("text", "matrix"):
            raise ValueError(f"Unsupported output_format '{output_format}'")

        with self._lock:
            self._rasterize(a, b)
            if output_format == "matrix":
                return self._frame_matrix()
            return compose_matrix(self._frame_matrix())

    async def render_async(
        self,
        a: float,
        b: float,
        *,
        executor: ThreadPoolExecutor | None = None,
        output_format: str = "text",
    ) -> Union[str, FrameMatrix]:
        loop = asyncio.get_running_loop()
        local_executor = executor
        created_executor = False
        if local_executor is None:
            local_executor = ThreadPoolExecutor(max_workers=1)
            created_executor = True

        try:
            return await loop.run_in_executor(
                local_executor,
                lambda: self.render_frame(a, b, output_format=output_format),
            )
        finally:
            if created_executor:
                local_executor.shutdown(wait=True)

    def reset(self) -> None:
        size = self.width * self.height
        self._chars[:] = [self._BLANK] * size
        self._z_inv[:] = [0.0] * size

    def project(self, x: float, y: float, z: float) -> Tuple[int, int, float]:
        """Perspective-project a camera-space point onto the character grid.

        ``int()`` truncates toward zero, so a column of -0.5 lands in column 0.
        Rows grow downward while ``y`` grows upward.
        """
        z_inv = 1.0 / z
        scale = self._k1 * z_inv
        column = int(0.5 * self.width + scale * x)
        row = int(0.5 * self.height - scale * y)
        return column, row, z_inv

    def plot(self, column: int, row: int, z_inv: float, luminance: float) -> bool:
        """Write one sample if it is on screen, front facing and nearest.

        Returns ``True`` when the sample was stored.
        """
        if column < 0 or column >= self.width or row < 0 or row >= self.height:
            return False
        index = row * self.width + column
        if luminance < 0 or z_inv <= self._z_inv[index]:
            return False
        self._z_inv[index] = z_inv
        self._chars[index] = self.char_for_luminance(luminance)
        return True

    def char_for_luminance(self, luminance: float) -> str:
        palette = self.palette
        last = len(palette) - 1
        idx = int(max(0.0, luminance) * len(palette))
        return palette[min(idx, last)]

    def char_at(self, column: int, row: int) -> str:
        return self._chars[row * self.width + column]

    def depth_at(self, column: int, row: int) -> float:
        return self._z_inv[row * self.width + column]

    # Internal helpers -------------------------------------------------

    def _rasterize(self, a: float, b: float) -> None:
        cos_a, sin_a = math.cos(a), math.sin(a)
        cos_b, sin_b = math.cos(b), math.sin(b)
        self.reset()

        r1 = self.config.r1
        r2 = self.config.r2
        k2 = self.config.k2
        k1 = self._k1
        width = self.width
        height = self.height
        half_width = 0.5 * width
        half_height = 0.5 * height
        chars = self._chars
        z_buffer = self._z_inv
        palette = self.palette
        shades = len(palette)
        brightest = shades - 1
        phi_table = self._phi_table
        light_scale = math.sqrt(0.5)

        # Same arithmetic as project() and plot(), inlined for the per-sample loop.
        for cos_theta, sin_theta in self._theta_table:
            # Cross-section circle before revolving about the ring axis.
            circle_x = r2 + r1 * cos_theta
            circle_y = r1 * sin_theta

            for cos_phi, sin_phi in phi_table:
                x = circle_x * (cos_b * cos_phi + sin_a * sin_b * sin_phi) - circle_y * cos_a * sin_b
                y = circle_x * (sin_b * cos_phi - sin_a * cos_b * sin_phi) + circle_y * cos_a * cos_b
                z = circle_x * cos_a * sin_phi + circle_y * sin_a + k2

                z_inv = 1.0 / z
                scale = k1 * z_inv
                column = int(half_width + scale * x)
                row = int(half_height - scale * y)
                if column < 0 or column >= width or row < 0 or row >= height:
                    continue

                # Surface normal dotted with the light direction (0, 1, -1) / sqrt(2).
                luminance = light_scale * (
                    cos_phi * cos_theta * sin_b
                    - cos_a * cos_theta * sin_phi
                    - sin_a * sin_theta
                    + cos_b * (cos_a * sin_theta - cos_theta * sin_a * sin_phi)
                )
                index = row * width + column
                if luminance < 0 or z_inv <= z_buffer[index]:
                    continue

                z_buffer[index] = z_inv
                shade = int(luminance * shades)
                chars[index] = palette[shade if shade < brightest else brightest]

    def _frame_matrix(self) -> FrameMatrix:
        width = self.width
        chars = self._chars
        return [chars[start:start + width] for start in range(0, len(chars), width)]


def compose_matrix(frame: Sequence[Sequence[str]]) -> str:
    """Serialize a character matrix row-major with a newline after each row."""
    return "".join("".join(row) + "\n" for row in frame)
