"""
Serverless microservice toolkit.

Front controllers that run Lambda features under their invocation deadline,
plus the tooling to manage a service's parameters and deploy its features.
"""

__version__ = '0.1.0'
