"""Core shared logic for indicators, strategies, signals and models.

This package contains pure business logic with no I/O dependencies
(no database or network access). It is shared between the live service
(app/), the agent scheduler (scheduler/) and the backtesting system
(backtest/).
"""
