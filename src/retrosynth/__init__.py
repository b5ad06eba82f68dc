"""Retro-style FM and additive synthesiser rendering to PCM WAV files."""

from __future__ import annotations

from .adsr import Envelope
from .generator import (
    AdditiveGenerator,
    ClipGenerator,
    OpGenerator,
    OpInstance,
    ScaleGenerator,
    WaveFunction,
    make_instances,
)
from .genmap import GenmapError, GenmapResult, run as run_genmap
from .render import render_beep, render_script

__all__ = [
    "AdditiveGenerator",
    "ClipGenerator",
    "Envelope",
    "GenmapError",
    "GenmapResult",
    "OpGenerator",
    "OpInstance",
    "ScaleGenerator",
    "WaveFunction",
    "make_instances",
    "render_beep",
    "render_script",
    "run_genmap",
]
