"""
Prompts for the Tutor Gateway

Modules:
    - templates: System prompts, product facts, guardrail snippets
    - composer: Upstream message assembly
"""
