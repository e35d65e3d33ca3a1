"""
Response envelope helpers shared by every API view.
"""

from django.core.paginator import EmptyPage, Page
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


API_VERSION = '0.1.0'


def envelope(success=True, title='', message='', **payload):
    """
    Wrap a payload in the standard API envelope.

    Args:
        success: Whether the operation succeeded
        title: Short human readable title
        message: Longer human readable message
        **payload: Extra keys placed under ``data`` (item, items, errors, pagination)

    Returns:
        dict: ``{"apiVersion": ..., "data": {...}}``
    """
    data = {
        'success': success,
        'title': title,
        'message': message,
    }
    data.update(payload)
    return {'apiVersion': API_VERSION, 'data': data}


def success_response(title, message, item=None, status_code=status.HTTP_200_OK, headers=None):
    payload = {} if item is None else {'item': item}
    return Response(
        envelope(True, title, message, **payload),
        status=status_code,
        headers=headers,
    )


class EnvelopePagination(PageNumberPagination):
    """
    Page-number pagination returning ``items`` and ``pagination`` inside the envelope.

    Views set ``list_title`` and ``list_message`` to label the page.
    """
    page_size = 10
    page_size_query_param = 'per_page'
    max_page_size = 50

    def paginate_queryset(self, queryset, request, view=None):
        """
        Paginate like DRF, except that a page past the end is empty rather than a 404.
        """
        self.view = view
        page_size = self.get_page_size(request)
        if not page_size:
            return None

        paginator = self.django_paginator_class(queryset, page_size)
        page_number = self.get_page_number(request, paginator)
        if page_number in self.last_page_strings:
            page_number = paginator.num_pages

        try:
            page_number = int(page_number)
        except (TypeError, ValueError):
            page_number = 0
        if page_number < 1:
            raise ValidationError({'page': 'Page must be a positive integer.'})

        try:
            self.page = paginator.page(page_number)
        except EmptyPage:
            self.page = Page([], page_number, paginator)

        self.request = request
        return list(self.page)

    def get_paginated_response(self, data):
        paginator = self.page.paginator
        return Response(envelope(
            True,
            getattr(self.view, 'list_title', 'Results'),
            getattr(self.view, 'list_message', 'Results retrieved successfully'),
            items=data,
            pagination={
                'total': paginator.count,
                'page': self.page.number,
                'perPage': paginator.per_page,
                'totalPages': paginator.num_pages,
                'hasNextPage': self.page.has_next(),
                'hasPrevPage': self.page.has_previous(),
            },
        ))
