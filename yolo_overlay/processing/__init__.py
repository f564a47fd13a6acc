"""
Processing package: frame sources, capture, model loading, detection, overlay reduction and the frame cache.
"""
