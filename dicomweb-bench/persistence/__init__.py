"""
Result records, aggregation, reports and exporters.
"""
