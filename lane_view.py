# -*- coding: utf-8 -*-
########################
# lane_view.py
########################
# Purpose:
# - Four lane playfield Qt widget for the play command.
# - Paints the controller's active tiles, the tap zone, and a HUD with score, combo and last accuracy.
#
########################
# Key Logic:
# - Tiles fall from the top of the widget (position 0.0) toward the tap zone line (tap_zone_position).
#   A tile's y coordinate is position * playfield height, so the view never computes timing itself.
# - Hit tiles are drawn faded until they retire. Missed tiles are tinted red.
# - Lane flashes show for a short time after a key press on that lane.
# - Keyboard input is forwarded to InputRouter. The view does not map keys.
# - Repaint is driven by GameLoop.ticked; the widget owns no timer.
#
########################
# Interfaces:
# Public dataclasses:
# - LaneViewConfig(side_margin_pixels, top_margin_pixels, tile_height_pixels, lane_flash_seconds, ...)
#
# Public classes:
# - class LaneView(PyQt6.QtWidgets.QWidget)
#   - set_status_text(text: str) -> None
#   - status_text() -> str
#   - on_lane_pressed(lane: int) -> None
#
# Inputs:
# - RhythmGameController (read only views)
# - InputRouter for key events
#
# Outputs:
# - Painted playfield on the widget surface.
#
########################

from __future__ import annotations

from dataclasses import dataclass
import time
from typing import List, Optional

from PyQt6.QtCore import QRectF, Qt
from PyQt6.QtGui import QBrush, QColor, QFont, QKeyEvent, QPainter, QPen
from PyQt6.QtWidgets import QWidget

import gameplay_models
import input_router
import rhythm_game_controller
from gameplay_models import GameState, HitAccuracy


_LANE_COLORS = (
    QColor(240, 90, 110),
    QColor(90, 200, 120),
    QColor(80, 160, 240),
    QColor(245, 200, 80),
)

_ACCURACY_COLORS = {
    HitAccuracy.PERFECT: QColor(255, 230, 120),
    HitAccuracy.GOOD: QColor(140, 220, 255),
    HitAccuracy.MISS: QColor(255, 90, 90),
}


@dataclass(frozen=True)
class LaneViewConfig:
    side_margin_pixels: float = 40.0
    top_margin_pixels: float = 60.0
    bottom_margin_pixels: float = 20.0
    lane_gap_pixels: float = 8.0
    tile_height_pixels: float = 26.0
    lane_flash_seconds: float = 0.10


class LaneView(QWidget):
    def __init__(
        self,
        controller: rhythm_game_controller.RhythmGameController,
        router: input_router.InputRouter,
        *,
        config: Optional[LaneViewConfig] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._controller = controller
        self._router = router
        self._config = config or LaneViewConfig()

        self._status_text = ""
        self._lane_flash_at: List[float] = [-999.0] * gameplay_models.LANE_COUNT

        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(360, 480)
        self._router.lanePressed.connect(self.on_lane_pressed)

    def set_status_text(self, text: str) -> None:
        self._status_text = str(text or "")
        self.update()

    def status_text(self) -> str:
        return self._status_text

    def on_lane_pressed(self, lane: int) -> None:
        if 0 <= int(lane) < len(self._lane_flash_at):
            self._lane_flash_at[int(lane)] = time.monotonic()

    # -----------------
    # Qt events
    # -----------------

    def keyPressEvent(self, event: QKeyEvent) -> None:  # type: ignore[override]
        if self._router.handle_key_press(event):
            event.accept()
            return
        super().keyPressEvent(event)

    def keyReleaseEvent(self, event: QKeyEvent) -> None:  # type: ignore[override]
        if self._router.handle_key_release(event):
            event.accept()
            return
        super().keyReleaseEvent(event)

    def focusOutEvent(self, event) -> None:  # type: ignore[override]
        self._router.clear_pressed_keys()
        super().focusOutEvent(event)

    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.fillRect(self.rect(), QBrush(QColor(10, 10, 14)))

        lanes = self._lane_rects()
        self._paint_lanes(painter, lanes)

        state = self._controller.state
        if state in (GameState.PLAYING, GameState.PAUSED, GameState.FINISHED):
            self._paint_tiles(painter, lanes)
            self._paint_hud(painter)

        self._paint_overlay_text(painter, state)
        painter.end()

    # -----------------
    # Painting helpers
    # -----------------

    def _playfield_rect(self) -> QRectF:
        config = self._config
        return QRectF(
            float(config.side_margin_pixels),
            float(config.top_margin_pixels),
            max(1.0, float(self.width()) - 2.0 * float(config.side_margin_pixels)),
            max(1.0, float(self.height()) - float(config.top_margin_pixels) - float(config.bottom_margin_pixels)),
        )

    def _lane_rects(self) -> List[QRectF]:
        field = self._playfield_rect()
        gap = float(self._config.lane_gap_pixels)
        lane_count = gameplay_models.LANE_COUNT
        lane_width = (field.width() - gap * float(lane_count - 1)) / float(lane_count)
        return [
            QRectF(field.left() + float(lane) * (lane_width + gap), field.top(), lane_width, field.height())
            for lane in range(lane_count)
        ]

    def _tap_zone_y(self) -> float:
        field = self._playfield_rect()
        geometry = self._controller.settings.geometry
        return field.top() + float(geometry.tap_zone_position) * field.height()

    def _paint_lanes(self, painter: QPainter, lanes: List[QRectF]) -> None:
        now = time.monotonic()
        tap_zone_y = self._tap_zone_y()

        for lane, rect in enumerate(lanes):
            flashing = (now - self._lane_flash_at[lane]) <= float(self._config.lane_flash_seconds)
            painter.save()
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(QBrush(QColor(40, 40, 52) if flashing else QColor(22, 22, 28)))
            painter.drawRect(rect)
            painter.restore()

        painter.save()
        painter.setPen(QPen(QColor(230, 230, 230), 3.0))
        field = self._playfield_rect()
        painter.drawLine(int(field.left()), int(tap_zone_y), int(field.right()), int(tap_zone_y))
        painter.restore()

    def _paint_tiles(self, painter: QPainter, lanes: List[QRectF]) -> None:
        field = self._playfield_rect()
        tile_height = float(self._config.tile_height_pixels)

        for tile in self._controller.active_tiles():
            lane = int(tile.lane)
            if lane < 0 or lane >= len(lanes):
                continue
            lane_rect = lanes[lane]
            center_y = field.top() + float(tile.position) * field.height()
            rect = QRectF(lane_rect.left() + 4.0, center_y - tile_height / 2.0, lane_rect.width() - 8.0, tile_height)

            color = QColor(_LANE_COLORS[lane % len(_LANE_COLORS)])
            painter.save()
            if tile.is_hit:
                painter.setOpacity(painter.opacity() * 0.25)
            elif tile.is_missed:
                color = QColor(120, 40, 40)
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(QBrush(color))
            painter.drawRoundedRect(rect, 6.0, 6.0)
            painter.restore()

    def _paint_hud(self, painter: QPainter) -> None:
        score_state = self._controller.score_state()

        painter.save()
        painter.setPen(QPen(QColor(240, 240, 240)))
        painter.setFont(QFont("Arial", 12))
        hud_text = (
            f"Score {score_state.score}  Combo {score_state.combo}  "
            f"x{score_state.combo_multiplier()}  Max {score_state.max_combo}"
        )
        painter.drawText(QRectF(10.0, 10.0, float(self.width()) - 20.0, 22.0), int(Qt.AlignmentFlag.AlignLeft), hud_text)
        painter.restore()

        accuracy = self._controller.last_accuracy()
        if accuracy is not None:
            painter.save()
            painter.setPen(QPen(_ACCURACY_COLORS[accuracy]))
            painter.setFont(QFont("Arial", 20, weight=QFont.Weight.Bold))
            painter.drawText(
                QRectF(0.0, self._tap_zone_y() - 80.0, float(self.width()), 32.0),
                int(Qt.AlignmentFlag.AlignHCenter),
                accuracy.value.upper(),
            )
            painter.restore()

    def _paint_overlay_text(self, painter: QPainter, state: GameState) -> None:
        text = self._status_text
        if state == GameState.LOADING:
            text = f"Loading... {int(round(self._controller.loading_progress * 100.0))}%"
        elif state == GameState.PAUSED:
            text = "PAUSED  (space to resume, esc to quit)"
        elif state == GameState.FINISHED:
            result = self._controller.session_result()
            if result is not None:
                text = f"Finished: {result.score} points, max combo {result.max_combo}  (r to retry)"
        elif state == GameState.SELECTING and self._controller.last_error_text:
            text = self._controller.last_error_text

        if not text:
            return

        painter.save()
        painter.setPen(QPen(QColor(220, 220, 220)))
        painter.setFont(QFont("Arial", 14))
        painter.drawText(
            QRectF(0.0, float(self.height()) / 2.0 - 14.0, float(self.width()), 28.0),
            int(Qt.AlignmentFlag.AlignHCenter),
            text,
        )
        painter.restore()
