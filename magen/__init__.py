# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Magen - human-in-the-loop workflows driven by an external tool-calling client.

A workflow is a graph of nodes run by a small engine that can suspend to ask
the caller for input and resume in a later process from a durable checkpoint.
Each round trip with the caller goes through an orchestrator:

    from magen.workflows.prd import create_prd_orchestrator

    orchestrator = create_prd_orchestrator()
    output = await orchestrator.handle_request({"userInput": "Add offline sync"})
    print(output.orchestrationInstructionsPrompt)

Building a workflow of your own:

    from magen.framework import END, START, StateGraph

    graph = StateGraph(MyState)
    graph.add_node("ask", ask_node)
    graph.add_edge(START, "ask")
    graph.add_edge("ask", END)
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
