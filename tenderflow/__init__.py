"""TenderFlow - tender, bid, award and contract lifecycle engine."""
