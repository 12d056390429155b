"""
Services Package

Long-running and orchestration logic built on top of the exchange connectors:
- FundingAggregator: concurrent fetch, grouping and ranking of funding spreads
- NotificationScheduler: per-subscriber alert timers (recurring and pre-settlement)
- TimerService, SubscriberStore, AlertBus: the scheduler's building blocks
"""
