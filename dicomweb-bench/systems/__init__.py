"""
HTTP profiling, authorization and DICOMweb endpoints.
"""
