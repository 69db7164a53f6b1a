"""의존성 주입 컨테이너"""
from typing import Any, Callable, Dict, Type, TypeVar, Union, get_args, get_origin
from types import UnionType
import inspect


_UNRESOLVED = object()

T = TypeVar('T')

class DIContainer:
    """서비스 등록/조회용 경량 컨테이너

    - register_singleton: 이미 만들어진 인스턴스를 그대로 반환
    - register_factory: 조회 시점에 팩토리를 호출해 인스턴스를 만든 뒤 캐싱
    - register_service: 생성자 타입 힌트로 의존성을 해결해 인스턴스 생성 후 캐싱
    """

    def __init__(self):
        self._instances: Dict[Type, Any] = {}
        self._factories: Dict[Type, Callable[[], Any]] = {}
        self._services: Dict[Type, Type] = {}

    def register_singleton(self, interface: Type[T], implementation: T) -> None:
        self._instances[interface] = implementation

    def register_factory(self, interface: Type[T], factory_func: Callable[[], T]) -> None:
        self._instances.pop(interface, None)
        self._factories[interface] = factory_func

    def register_service(self, interface: Type[T], service_class: Type[T]) -> None:
        self._instances.pop(interface, None)
        self._services[interface] = service_class

    def is_registered(self, interface: Type) -> bool:
        return interface in self._instances or interface in self._factories or interface in self._services

    def get(self, interface: Type[T]) -> T:
        """서비스 인스턴스 조회"""
        if interface in self._instances:
            return self._instances[interface]

        if interface in self._factories:
            instance = self._factories[interface]()
        elif interface in self._services:
            instance = self._create_instance(self._services[interface])
        else:
            interface_name = getattr(interface, "__name__", repr(interface))
            raise ValueError(f"Service {interface_name} not registered")

        self._instances[interface] = instance
        return instance

    def reset(self) -> None:
        """등록 정보 전체 초기화 (테스트용)"""
        self._instances.clear()
        self._factories.clear()
        self._services.clear()

    def _create_instance(self, service_class: Type[T]) -> T:
        """생성자 시그니처를 기반으로 의존성을 해결"""
        sig = inspect.signature(service_class.__init__)

        kwargs = {}
        for param_name, param in sig.parameters.items():
            if param_name == 'self' or param.annotation is inspect.Parameter.empty:
                continue

            resolved = self._resolve(param.annotation)
            if resolved is not _UNRESOLVED:
                kwargs[param_name] = resolved
            elif param.default is not inspect.Parameter.empty:
                kwargs[param_name] = param.default
            else:
                raise ValueError(f"Cannot resolve dependency {param.annotation} for {service_class.__name__}")

        return service_class(**kwargs)

    def _resolve(self, annotation: Any) -> Any:
        if get_origin(annotation) in (Union, UnionType):
            candidates = [arg for arg in get_args(annotation) if arg is not type(None)]
            for candidate in candidates:
                if self.is_registered(candidate):
                    return self.get(candidate)
            # Optional[T]는 해결 실패 시 None 주입
            if len(candidates) != len(get_args(annotation)):
                return None
            return _UNRESOLVED

        if self.is_registered(annotation):
            return self.get(annotation)
        return _UNRESOLVED

# 전역 컨테이너 인스턴스
container = DIContainer()
