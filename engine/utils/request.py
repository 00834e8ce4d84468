# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting region resolution inputs from Flask requests.
"""

from flask import request
from typing import Optional
import logging

from models.entities import RegionContext
from models.requests import RecommendationOptions

logger = logging.getLogger(__name__)


class RequestParser:
    """Utility for parsing and extracting request data."""

    @staticmethod
    def get_client_ip() -> Optional[str]:
        """
        Determine the client address behind proxies.

        Uses the first hop of X-Forwarded-For, then X-Real-IP, then the
        socket peer address.

        Returns:
            IP address string or None
        """
        forwarded_for = request.headers.get('X-Forwarded-For', '')
        if forwarded_for:
            first_hop = forwarded_for.split(',')[0].strip()
            if first_hop:
                return first_hop

        real_ip = request.headers.get('X-Real-IP', '').strip()
        if real_ip:
            return real_ip

        return request.remote_addr

    @staticmethod
    def get_accept_language() -> Optional[str]:
        """Raw Accept-Language header, if sent."""
        return request.headers.get('Accept-Language') or None

    @staticmethod
    def get_query_param(name: str) -> Optional[str]:
        """Stripped query parameter, or None when absent or blank."""
        value = request.args.get(name, '').strip()
        return value or None


def build_region_context(owner_id: Optional[str] = None) -> RegionContext:
    """
    Build the region resolution context for the current request.

    Args:
        owner_id: Authenticated owner, if any

    Returns:
        RegionContext with explicit region, client IP and Accept-Language
    """
    context = RegionContext(
        region=RequestParser.get_query_param('region'),
        owner_id=owner_id,
        ip_address=RequestParser.get_client_ip(),
        accept_language=RequestParser.get_accept_language()
    )
    logger.debug(f"Region context for owner {owner_id}: region={context.region} ip={context.ip_address}")
    return context


def build_recommendation_options(owner_id: Optional[str] = None) -> RecommendationOptions:
    """Recommendation options from the query string plus the request's region context."""
    return RecommendationOptions(
        region=RequestParser.get_query_param('region'),
        country=RequestParser.get_query_param('country'),
        season=RequestParser.get_query_param('season'),
        context=build_region_context(owner_id)
    )
