#!/usr/bin/env python3
"""
Static site deployment: private S3 bucket behind CloudFront.
"""
