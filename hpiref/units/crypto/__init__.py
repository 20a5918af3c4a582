#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
The two ciphers used by HPI archives: The keystream that covers everything after the archive
header, and the byte cipher that may be applied to the payload of individual chunks.
"""
