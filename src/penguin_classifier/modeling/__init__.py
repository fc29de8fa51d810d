"""
Modeling layer for training, tuning and inference.

Builds preprocessing recipes and model workflows, compares them on
resamples, tunes hyperparameters and scores new observations.
"""
