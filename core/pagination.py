"""
Page-number pagination producing the list envelope used by every list endpoint:

    {"success": true, "data": [...], "pagination": {"total", "page", "limit", "totalPages"}}
"""
import math

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardPagination(PageNumberPagination):
    page_size = 10
    page_query_param = 'page'
    page_size_query_param = 'limit'
    max_page_size = 100

    def get_paginated_response(self, data):
        total = self.page.paginator.count
        limit = self.page.paginator.per_page
        return Response({
            'success': True,
            'data': data,
            'pagination': {
                'total': total,
                'page': self.page.number,
                'limit': limit,
                'totalPages': math.ceil(total / limit) if limit else 0,
            },
        })
