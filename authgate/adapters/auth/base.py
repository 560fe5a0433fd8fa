from abc import ABC, abstractmethod

from authgate.adapters.http.base import CanonicalRequest, CanonicalResponse


class AbstractAuthHandler(ABC):
	"""Interface for the external component that performs authentication.

	Credential checks, sessions and account storage all live behind this
	interface; the gateway only translates requests in and responses out.
	"""

	@abstractmethod
	async def handle(self, request: CanonicalRequest) -> CanonicalResponse:
		"""Process one canonical request.

		Args:
			request: Fully translated request with the external origin applied.

		Returns:
			CanonicalResponse: Status, multi-valued headers and body.

		Raises:
			AuthHandlerError: If the handler cannot produce a response.
		"""
		...

	async def aclose(self) -> None:
		"""Release any resources held by the handler."""
		return None
