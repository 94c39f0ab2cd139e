"""
Neuro-Forage: Survival-Driven Neuroevolution of Foraging Agents

Small feedforward brains, evolved rather than trained. Each generation
lives until hunger or thirst takes it; the ones that lasted longest
pass their weights on.
"""

__version__ = "0.1.0"
