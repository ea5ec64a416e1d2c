"""Error taxonomy for the commit dashboard core."""


#============================================
class DashboardError(RuntimeError):
	"""
	Base class for every user-visible dashboard failure.
	"""


#============================================
class InvalidRangeError(DashboardError):
	"""
	Raised when a requested date range is malformed or inverted.
	"""


#============================================
class TransportError(DashboardError):
	"""
	Raised when a provider fetch fails (network, auth, quota).
	"""


#============================================
class RateLimitError(TransportError):
	"""
	Raised when GitHub API rate limits block further requests.
	"""


#============================================
class MalformedRecordError(DashboardError):
	"""
	Raised when a fetched commit record has no usable identity.
	"""


#============================================
class FetchInProgressError(DashboardError):
	"""
	Raised when a range update is requested while another is running.
	"""


#============================================
class SettingsError(DashboardError):
	"""
	Raised when settings.yaml holds an invalid value.
	"""
