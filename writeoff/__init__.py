"""Writeoff: multi-model writing benchmark with judge-driven refinement."""
