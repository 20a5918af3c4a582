#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
The compression algorithms used inside HPI archives. These units operate on the raw streams and
are mainly useful to inspect individual chunks of an archive.
"""
