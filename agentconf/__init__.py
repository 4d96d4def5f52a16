"""
agentconf - cached agent configuration lookups backed by Elasticsearch
"""

__version__ = "0.1.0"
