"""健康探测器模块"""

from .prober import HttpProber, probe, UNAVAILABLE_STATUS

__all__ = ['HttpProber', 'probe', 'UNAVAILABLE_STATUS']
