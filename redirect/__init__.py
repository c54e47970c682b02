#!/usr/bin/env python3
"""
Domain redirects: S3 website redirect buckets behind CloudFront.
"""
