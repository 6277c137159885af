"""Enrollment completeness tracking and capture guidance."""

from __future__ import annotations

from typing import Iterable, Optional

from facebank.types import CANONICAL_ANGLES, AngleClass, FaceAngle

_INSTRUCTIONS = {
    AngleClass.FRONTAL: "Look straight at the camera",
    AngleClass.LEFT_PROFILE: "Slowly turn your head to the left",
    AngleClass.RIGHT_PROFILE: "Slowly turn your head to the right",
    AngleClass.UP_ANGLE: "Tilt your head up slightly",
    AngleClass.DOWN_ANGLE: "Tilt your head down slightly",
}


def next_required_angle(captured: Iterable[AngleClass]) -> Optional[AngleClass]:
    """First canonical angle not yet captured, or None when complete."""
    done = set(captured)
    for angle in CANONICAL_ANGLES:
        if angle not in done:
            return angle
    return None


def completion_progress(captured: Iterable[AngleClass]) -> float:
    """Fraction of canonical angles covered, in [0, 1]."""
    done = set(captured) & set(CANONICAL_ANGLES)
    return len(done) / len(CANONICAL_ANGLES)


def is_complete(captured: Iterable[AngleClass]) -> bool:
    return next_required_angle(captured) is None


def instruction_for(angle: Optional[AngleClass]) -> str:
    if angle is None:
        return "Enrollment complete"
    return _INSTRUCTIONS.get(angle, "Position your face in the frame")


def pose_guidance(
    target: AngleClass,
    angle: FaceAngle,
    confidence: Optional[float] = None,
) -> str:
    """Directional hint that moves the current pose toward the target.

    Args:
        target: Angle the enrollment flow is waiting for.
        angle: Current head pose.
        confidence: Detection confidence, used to grade a matching pose.
    """
    if angle.angle_class == target:
        if confidence is None or confidence > 0.7:
            return "Good, capturing"
        if confidence > 0.5:
            return "Good, hold still a little longer"
        return "Angle is right but quality is low, improve the lighting"

    if target is AngleClass.FRONTAL:
        if angle.yaw > 10:
            return "Turn your head left"
        if angle.yaw < -10:
            return "Turn your head right"
        if angle.pitch > 10:
            return "Tilt your head down"
        if angle.pitch < -10:
            return "Tilt your head up"
        return "Look straight ahead"
    if target is AngleClass.LEFT_PROFILE:
        if angle.yaw > -20:
            return "Turn your head further to the left"
        if angle.yaw < -60:
            return "Turn your head back a little to the right"
    elif target is AngleClass.RIGHT_PROFILE:
        if angle.yaw < 20:
            return "Turn your head further to the right"
        if angle.yaw > 60:
            return "Turn your head back a little to the left"
    elif target is AngleClass.UP_ANGLE:
        if angle.pitch < 15:
            return "Tilt your head further up"
        if angle.pitch > 45:
            return "Lower your head a little"
    elif target is AngleClass.DOWN_ANGLE:
        if angle.pitch > -15:
            return "Tilt your head further down"
        if angle.pitch < -45:
            return "Raise your head a little"
    return "Adjust your position"


__all__ = [
    "next_required_angle",
    "completion_progress",
    "is_complete",
    "instruction_for",
    "pose_guidance",
]
