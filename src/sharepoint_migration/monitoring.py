# -*- coding: utf-8 -*-
"""
Rate limiting monitoring for Microsoft Graph calls.

A RateLimitMonitor is owned by each GraphRemoteStore and fed every response,
so throttling pressure during long migrations shows up in the console and
in the closing summary.
"""

import threading
from .utils import is_debug_metadata_enabled


class RateLimitMonitor:
    """
    Monitor and track Graph API rate limiting metrics.

    Analyzes response headers to detect and track throttling:
    - x-ms-throttle-limit-percentage: Utilization percentage (0.8-1.8 range)
    - x-ms-resource-unit: Resource units consumed per request
    - x-ms-throttle-scope: Throttling scope details

    Headers only appear when >80% of limit consumed.
    """

    def __init__(self):
        self.metrics = {
            'total_requests': 0,
            'throttled_requests': 0,
            'retried_requests': 0,
            'average_throttle_percentage': 0.0,
            'max_throttle_percentage': 0.0,
            'resource_units_consumed': 0,
            'alerts_triggered': 0
        }
        self.throttle_threshold = 0.8  # Alert when >80% of limit
        self._lock = threading.Lock()

        self.request_types = {
            'GET': 0,
            'POST': 0,
            'PUT': 0,
            'PATCH': 0,
            'DELETE': 0
        }

        self.operations = {
            'file_upload': 0,           # PUT to /content or upload session
            'file_lookup': 0,           # GET item by path
            'folder_list': 0,           # GET /children
            'folder_create': 0,         # POST create folder
            'metadata_update': 0,       # PATCH fileSystemInfo
            'site_library_info': 0,     # GET /sites/ and /drives listing
            'other': 0
        }

    def analyze_response_headers(self, response, method=None, url=None):
        """
        Analyze Graph API response headers for rate limiting info.

        Args:
            response: requests.Response object from Graph API call
            method (str): HTTP method
            url (str): Request URL for operation type detection

        Returns:
            dict: Rate limiting information extracted from headers
        """
        headers = response.headers
        throttle_percentage = headers.get('x-ms-throttle-limit-percentage')
        resource_unit = headers.get('x-ms-resource-unit')
        throttle_scope = headers.get('x-ms-throttle-scope')

        with self._lock:
            self.metrics['total_requests'] += 1

            if method and method.upper() in self.request_types:
                self.request_types[method.upper()] += 1

            if url and method:
                self.operations[self._categorize_operation(url, method.upper())] += 1

            if response.status_code == 429:
                self.metrics['throttled_requests'] += 1

            if throttle_percentage:
                percentage = float(throttle_percentage)
                self.metrics['max_throttle_percentage'] = max(
                    self.metrics['max_throttle_percentage'],
                    percentage
                )

                # Running average over all requests
                current_avg = self.metrics['average_throttle_percentage']
                total_requests = self.metrics['total_requests']
                self.metrics['average_throttle_percentage'] = (
                    ((current_avg * (total_requests - 1)) + percentage) / total_requests
                )

                if percentage >= 1.0:
                    print(f"[!] THROTTLING DETECTED: {percentage:.1%} of limit used")
                    if throttle_scope:
                        print(f"[!] Throttle scope: {throttle_scope}")
                elif percentage >= self.throttle_threshold:
                    self.metrics['alerts_triggered'] += 1
                    print(f"[ ] Rate limit warning: {percentage:.1%} of limit used")

            if resource_unit:
                units = int(resource_unit)
                self.metrics['resource_units_consumed'] += units
                if is_debug_metadata_enabled():
                    print(f"[=] Resource units consumed: {units}")

        return {
            'throttle_percentage': float(throttle_percentage) if throttle_percentage else None,
            'resource_unit': int(resource_unit) if resource_unit else None,
            'throttle_scope': throttle_scope,
            'is_throttled': response.status_code == 429
        }

    def record_retry(self):
        with self._lock:
            self.metrics['retried_requests'] += 1

    def should_slow_down(self):
        """
        Determine if requests should be slowed down proactively.

        Returns:
            bool: True if approaching rate limits (>90% utilization)
        """
        with self._lock:
            return self.metrics['max_throttle_percentage'] >= 0.9

    @staticmethod
    def _categorize_operation(url, method):
        url_lower = url.lower()

        if method == 'PUT' and ('/content' in url_lower or 'uploadsession' in url_lower):
            return 'file_upload'
        if method == 'POST' and 'createuploadsession' in url_lower:
            return 'file_upload'
        if method == 'PATCH':
            return 'metadata_update'
        if method == 'POST' and '/children' in url_lower:
            return 'folder_create'
        if method == 'GET' and '/children' in url_lower:
            return 'folder_list'
        if method == 'GET' and '/root:' in url_lower:
            return 'file_lookup'
        if method == 'GET' and ('/sites/' in url_lower or url_lower.endswith('/drives')):
            return 'site_library_info'
        return 'other'

    def get_metrics_summary(self):
        """
        Get comprehensive rate limiting metrics.

        Returns:
            dict: Summary of all rate limiting metrics
        """
        with self._lock:
            return {
                'total_requests': self.metrics['total_requests'],
                'throttled_requests': self.metrics['throttled_requests'],
                'retried_requests': self.metrics['retried_requests'],
                'throttle_rate': self.metrics['throttled_requests'] / max(self.metrics['total_requests'], 1),
                'average_throttle_percentage': self.metrics['average_throttle_percentage'],
                'max_throttle_percentage': self.metrics['max_throttle_percentage'],
                'resource_units_consumed': self.metrics['resource_units_consumed'],
                'alerts_triggered': self.metrics['alerts_triggered']
            }


def print_rate_limiting_summary(monitor):
    """
    Print rate limiting statistics collected during execution.

    Args:
        monitor (RateLimitMonitor): Monitor owned by the remote store
    """
    metrics = monitor.get_metrics_summary()

    print("\n" + "="*60)
    print("GRAPH API RATE LIMITING SUMMARY")
    print("="*60)
    print("[STATS] API Request Statistics:")
    print(f"   - Total API Requests:       {metrics['total_requests']:>6}")
    print(f"   - Throttled Requests:       {metrics['throttled_requests']:>6} ({metrics['throttle_rate']:.1%})")
    print(f"   - Retried Requests:         {metrics['retried_requests']:>6}")
    print(f"   - Average Throttle %:       {metrics['average_throttle_percentage']:>6.1%}")
    print(f"   - Max Throttle %:           {metrics['max_throttle_percentage']:>6.1%}")
    print(f"   - Resource Units Used:      {metrics['resource_units_consumed']:>6}")

    if any(monitor.request_types.values()):
        print("\n[API] Request Methods:")
        for method, count in monitor.request_types.items():
            if count > 0:
                print(f"   - {f'{method} requests:':<27} {count:>6}")

    if any(monitor.operations.values()):
        print("\n[OPS] Operation Types:")
        for op_type, count in monitor.operations.items():
            if count > 0:
                op_name = op_type.replace('_', ' ').title()
                print(f"   - {f'{op_name}:':<27} {count:>6}")

    if metrics['max_throttle_percentage'] >= 1.0 or metrics['throttled_requests']:
        print("\n[!] WARNING: Hit throttling limits during execution")
    elif metrics['max_throttle_percentage'] >= 0.8:
        print("\n[ ] CAUTION: Approached throttling limits")
    else:
        print("\n[OK] Stayed within throttling limits")
    print("="*60)
