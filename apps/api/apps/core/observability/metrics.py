"""
Metrics instrumentation wrapper around prometheus_client.
"""
from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry for the clinic API.
    
    Provides typed access to all application metrics.
    """
    
    def __init__(self):
        """Initialize metrics registry."""
        self._setup_metrics()
    
    def _create_counter(self, name, description, labels=None):
        """Create a counter metric."""
        return Counter(name, description, labels or [])
    
    def _create_histogram(self, name, description, labels=None, buckets=None):
        """Create a histogram metric."""
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])
    
    def _setup_metrics(self):
        """Setup all application metrics."""
        
        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.exceptions_total = self._create_counter(
            'exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )
        
        # ===================================================================
        # Attention Queue Metrics
        # ===================================================================
        self.attention_transitions_total = self._create_counter(
            'attention_transitions_total',
            'Attention status transitions',
            ['from_status', 'to_status', 'result']
        )
        
        self.attention_cancellations_total = self._create_counter(
            'attention_cancellations_total',
            'Attentions removed from the queue',
            ['status', 'result']
        )
        
        # ===================================================================
        # Consultation Record Metrics
        # ===================================================================
        self.consultation_records_created_total = self._create_counter(
            'consultation_records_created_total',
            'Consultation records created',
            ['result']
        )
        
        self.consultation_record_edits_total = self._create_counter(
            'consultation_record_edits_total',
            'Consultation record edit attempts',
            ['result']  # success, forbidden, window_expired
        )
        
        # ===================================================================
        # Payment Metrics
        # ===================================================================
        self.payments_recorded_total = self._create_counter(
            'payments_recorded_total',
            'Payments recorded',
            ['method', 'settled']
        )
        
        self.payments_cleanup_deleted_total = self._create_counter(
            'payments_cleanup_deleted_total',
            'Unsettled payments deleted with a cancelled attention'
        )
        
        # ===================================================================
        # Reconciliation / Report Metrics
        # ===================================================================
        self.reconciliation_matches_total = self._create_counter(
            'reconciliation_matches_total',
            'Reconciliation outcomes per unsettled payment',
            ['result']  # matched, unmatched
        )
        
        self.report_build_duration_seconds = self._create_histogram(
            'report_build_duration_seconds',
            'Duration of revenue report builds',
            ['period'],
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
        )


# Global metrics instance
metrics = MetricsRegistry()
