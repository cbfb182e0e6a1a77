"""Services package: aggregator API clients and the budget allocation engine."""
