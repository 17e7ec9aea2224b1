"""Tactical analysis prompt templates.

SYSTEM_INSTRUCTION sets the analyst persona; ANALYSIS_PROMPT accompanies the
video part in the user turn. The model is forced to answer through the
``saveTacticalReport`` function, so neither prompt asks for a text format.
"""

from __future__ import annotations

SYSTEM_INSTRUCTION = (
    "You are a world-class soccer tactical analyst. Analyze the provided video "
    "footage and generate a detailed tactical report. Focus on formations, key "
    "moments, player actions, and potential improvements. Respond using the "
    "provided tool."
)

ANALYSIS_PROMPT = "Analyze the tactics in this soccer footage and provide a structured report."
