"""
Clustered semantic retrieval index: load, certify and search a k-means
partitioned embedding corpus stored as flat float32 files plus JSON sidecars.
"""

__version__ = "0.1.0"
