from abc import ABC, abstractmethod


class AbstractImageRelay(ABC):
	"""Interface for services that composite a rug into a room photo."""

	@abstractmethod
	async def generate(self, prompt: str, *, room_url: str, rug_url: str) -> str:
		"""Request a composite image from the remote service.

		Args:
			prompt: Editing instructions for the generation model.
			room_url: Publicly reachable URL of the room photo.
			rug_url: Publicly reachable URL of the rug photo.

		Returns:
			str: Base64-encoded result image (no data URI prefix).

		Raises:
			RelayAppError: If the call fails or no image comes back.
		"""
		...
