"""
Storage collaborators: candle sources, pipeline repositories, backtest stores.
"""
