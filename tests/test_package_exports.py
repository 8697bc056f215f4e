def test_root_package_reexports_expected_symbols():
    import code_auditor
    from code_auditor.agent.controller import CodeAnalysisAgent
    from code_auditor.providers.llm import create_client as provider_create
    from code_auditor.tools.dispatcher import ToolDispatcher

    assert isinstance(code_auditor.__version__, str)
    assert code_auditor.CodeAnalysisAgent is CodeAnalysisAgent
    assert code_auditor.ToolDispatcher is ToolDispatcher
    assert code_auditor.create_client is provider_create
    assert code_auditor.core.configure_logging is code_auditor.configure_logging


def test_error_hierarchy_is_shared():
    from code_auditor import AuditorError, TransportError
    from code_auditor.providers.llm import LLMError

    assert issubclass(LLMError, TransportError)
    assert issubclass(TransportError, AuditorError)


def test_all_lists_resolve():
    import code_auditor
    import code_auditor.agent
    import code_auditor.tools

    for module in (code_auditor, code_auditor.agent, code_auditor.tools):
        for name in module.__all__:
            assert hasattr(module, name), f"{module.__name__} is missing {name}"


def test_tool_modules_export_public_names_only():
    from code_auditor.tools import dispatcher, filesystem, registry, reporting, search

    for module in (dispatcher, filesystem, registry, reporting, search):
        exported = getattr(module, "__all__", ())
        assert not [name for name in exported if name.startswith("_")], module.__name__
